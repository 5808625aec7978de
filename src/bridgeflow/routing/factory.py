"""Factory for creating provider adapters by name."""

import logging
from enum import Enum
from typing import Any, Union

from bridgeflow.routing.base import ProviderAdapter

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    """Supported bridge aggregators."""
    RELAY = "relay"
    LIFI = "lifi"


def create_relay_adapter(**kwargs: Any) -> ProviderAdapter:
    """Create the Relay adapter (keyword arguments go to ``RelayAdapter``)."""
    from bridgeflow.routing.relay import RelayAdapter
    return RelayAdapter(**kwargs)


def create_lifi_adapter(**kwargs: Any) -> ProviderAdapter:
    """Create the LI.FI adapter (keyword arguments go to ``LiFiAdapter``)."""
    from bridgeflow.routing.lifi import LiFiAdapter
    return LiFiAdapter(**kwargs)


_FACTORIES = {
    ProviderName.RELAY: create_relay_adapter,
    ProviderName.LIFI: create_lifi_adapter,
}


def create_adapter(name: Union[ProviderName, str], **kwargs: Any) -> ProviderAdapter:
    """Create a provider adapter from its tag.

    Args:
        name: ``ProviderName`` member or its string value ("relay", "lifi")
        **kwargs: Passed through to the adapter constructor

    Raises:
        ValueError: If the provider is unknown.
    """
    try:
        provider = ProviderName(name.lower() if isinstance(name, str) else name)
    except ValueError:
        supported = ", ".join(p.value for p in ProviderName)
        raise ValueError(f"Unknown provider '{name}' (supported: {supported})") from None

    adapter = _FACTORIES[provider](**kwargs)
    logger.debug(f"Created {adapter!r}")
    return adapter
