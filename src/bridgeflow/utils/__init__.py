"""Utility modules for bridgeflow."""

from bridgeflow.utils.polling import PollOutcome, poll_until

__all__ = ["PollOutcome", "poll_until"]
