"""Integer parsing and ERC20 calldata helpers.

Amounts are always Python ints in base units. Providers send them as
decimal strings, ``0x`` hex strings or JSON numbers; ``parse_amount``
accepts all three.
"""

from typing import Any, Optional

from web3 import Web3

# Function selectors
APPROVE_SELECTOR = "0x095ea7b3"    # approve(address,uint256)
ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)
BALANCE_OF_SELECTOR = "0x70a08231"  # balanceOf(address)

MAX_UINT256 = 2**256 - 1


def parse_amount(value: Any) -> int:
    """Parse an integer amount from int, decimal string or hex string.

    Raises:
        ValueError: If the value is not an integer encoding.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse amount from boolean {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Amount {value!r} is not an integer")
        return int(value)

    text = str(value).strip()
    if not text:
        return 0
    if text.lower().startswith("0x"):
        return int(text, 16) if len(text) > 2 else 0
    return int(text, 10)


def parse_optional_amount(value: Any) -> Optional[int]:
    """Like ``parse_amount`` but keeps missing values as ``None``."""
    if value is None or value == "":
        return None
    return parse_amount(value)


def _encode_address(address: str) -> str:
    return address.lower().replace("0x", "", 1).zfill(64)


def _encode_uint(value: int) -> str:
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"Value {value} does not fit in uint256")
    return format(value, "x").zfill(64)


def encode_approve(spender: str, amount: int) -> str:
    """Calldata for ``approve(spender, amount)``."""
    return APPROVE_SELECTOR + _encode_address(spender) + _encode_uint(amount)


def encode_allowance(owner: str, spender: str) -> str:
    """Calldata for ``allowance(owner, spender)``."""
    return ALLOWANCE_SELECTOR + _encode_address(owner) + _encode_address(spender)


def encode_balance_of(owner: str) -> str:
    """Calldata for ``balanceOf(owner)``."""
    return BALANCE_OF_SELECTOR + _encode_address(owner)


def decode_uint(result: Optional[str]) -> int:
    """Decode a single uint256 returned by ``eth_call``."""
    if not result or result == "0x":
        return 0
    return int(result[:66], 16)


def decode_approve(data: Optional[str]) -> Optional[tuple[str, int]]:
    """Extract ``(spender, amount)`` from approve calldata, or None if it is not an approve call."""
    if not data:
        return None
    data = data.lower()
    if not data.startswith(APPROVE_SELECTOR) or len(data) < 10 + 128:
        return None
    spender = Web3.to_checksum_address("0x" + data[10 + 24:10 + 64])
    amount = int(data[10 + 64:10 + 128], 16)
    return spender, amount
