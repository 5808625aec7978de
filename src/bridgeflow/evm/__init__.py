"""EVM chain access: JSON-RPC client, gas, allowances, receipts and signing."""
