"""EVM chain table: chain ids, names and public RPC endpoints.

Each chain may define backup RPC URLs; ``ChainClient`` moves on to the next
URL when the current one is unreachable.
"""

from dataclasses import dataclass, field
from typing import Optional

from bridgeflow.config import get_settings

# Native asset placeholders used by aggregators
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
NATIVE_PLACEHOLDER = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"

NATIVE_TOKEN_ADDRESSES = frozenset({ZERO_ADDRESS.lower(), NATIVE_PLACEHOLDER.lower()})


@dataclass
class ChainConfig:
    """Configuration for an EVM chain."""

    name: str
    chain_id: int
    symbol: str
    rpc_url: str
    rpc_url_backup: list[str] = field(default_factory=list)
    explorer_url: Optional[str] = None


# ======================
# Chain Configurations
# ======================

CHAINS: dict[int, ChainConfig] = {
    1: ChainConfig(
        name="ethereum",
        chain_id=1,
        symbol="ETH",
        rpc_url="https://ethereum-rpc.publicnode.com",
        rpc_url_backup=["https://eth.llamarpc.com"],
        explorer_url="https://etherscan.io",
    ),
    10: ChainConfig(
        name="optimism",
        chain_id=10,
        symbol="ETH",
        rpc_url="https://optimism-rpc.publicnode.com",
        rpc_url_backup=["https://mainnet.optimism.io"],
        explorer_url="https://optimistic.etherscan.io",
    ),
    56: ChainConfig(
        name="bsc",
        chain_id=56,
        symbol="BNB",
        rpc_url="https://bsc-rpc.publicnode.com",
        rpc_url_backup=["https://bsc-dataseed.binance.org"],
        explorer_url="https://bscscan.com",
    ),
    100: ChainConfig(
        name="gnosis", chain_id=100, symbol="XDAI", rpc_url="https://rpc.gnosischain.com"
    ),
    137: ChainConfig(
        name="polygon",
        chain_id=137,
        symbol="POL",
        rpc_url="https://polygon-rpc.com",
        explorer_url="https://polygonscan.com",
    ),
    169: ChainConfig(
        name="manta", chain_id=169, symbol="ETH", rpc_url="https://pacific-rpc.manta.network/http"
    ),
    204: ChainConfig(
        name="opbnb", chain_id=204, symbol="BNB", rpc_url="https://opbnb-mainnet-rpc.bnbchain.org"
    ),
    250: ChainConfig(name="fantom", chain_id=250, symbol="FTM", rpc_url="https://rpc.fantom.network"),
    324: ChainConfig(name="zksync", chain_id=324, symbol="ETH", rpc_url="https://mainnet.era.zksync.io"),
    1625: ChainConfig(name="gravity", chain_id=1625, symbol="G", rpc_url="https://rpc.gravity.xyz"),
    1868: ChainConfig(name="soneium", chain_id=1868, symbol="ETH", rpc_url="https://rpc.soneium.org"),
    5000: ChainConfig(name="mantle", chain_id=5000, symbol="MNT", rpc_url="https://rpc.mantle.xyz"),
    8453: ChainConfig(
        name="base",
        chain_id=8453,
        symbol="ETH",
        rpc_url="https://base-rpc.publicnode.com",
        rpc_url_backup=["https://mainnet.base.org"],
        explorer_url="https://basescan.org",
    ),
    42161: ChainConfig(
        name="arbitrum",
        chain_id=42161,
        symbol="ETH",
        rpc_url="https://arbitrum-one.publicnode.com",
        rpc_url_backup=["https://arb1.arbitrum.io/rpc"],
        explorer_url="https://arbiscan.io",
    ),
    43114: ChainConfig(
        name="avalanche",
        chain_id=43114,
        symbol="AVAX",
        rpc_url="https://avalanche-c-chain.publicnode.com",
        rpc_url_backup=["https://api.avax.network/ext/bc/C/rpc"],
    ),
    59144: ChainConfig(name="linea", chain_id=59144, symbol="ETH", rpc_url="https://rpc.linea.build"),
    81457: ChainConfig(name="blast", chain_id=81457, symbol="ETH", rpc_url="https://rpc.blast.io"),
    167000: ChainConfig(name="taiko", chain_id=167000, symbol="ETH", rpc_url="https://rpc.mainnet.taiko.xyz"),
    534352: ChainConfig(name="scroll", chain_id=534352, symbol="ETH", rpc_url="https://rpc.scroll.io"),
    7777777: ChainConfig(name="zora", chain_id=7777777, symbol="ETH", rpc_url="https://rpc.zora.energy"),
    11155111: ChainConfig(
        name="sepolia",
        chain_id=11155111,
        symbol="ETH",
        rpc_url="https://eth-sepolia.api.onfinality.io/public",
    ),
}


def get_chain(chain_id: int) -> Optional[ChainConfig]:
    """Get chain configuration by chain id."""
    return CHAINS.get(chain_id)


def get_chain_name(chain_id: int) -> str:
    """Human-readable chain name, falling back to ``chain <id>``."""
    chain = CHAINS.get(chain_id)
    return chain.name if chain else f"chain {chain_id}"


def chain_id_by_name(name: str) -> int:
    """Resolve a chain name (case and underscore insensitive) to its id.

    Raises:
        ValueError: If no chain with that name is configured.
    """
    normalized = name.replace("_", "").strip().lower()
    if normalized.isdigit() and int(normalized) in CHAINS:
        return int(normalized)
    for chain in CHAINS.values():
        if chain.name.replace("_", "") == normalized:
            return chain.chain_id
    raise ValueError(f"No chain configured for '{name}'")


def get_rpc_urls(chain_id: int) -> list[str]:
    """RPC URLs for a chain: settings override first, then primary and backups."""
    urls = []
    override = get_settings().get_rpc_url(chain_id)
    if override:
        urls.append(override)
    chain = CHAINS.get(chain_id)
    if chain:
        urls.append(chain.rpc_url)
        urls.extend(chain.rpc_url_backup)
    # Preserve order, drop duplicates
    return list(dict.fromkeys(urls))


def is_native_token(address: Optional[str]) -> bool:
    """Check whether an address is one of the native-asset placeholders."""
    if not address:
        return True
    return address.lower() in NATIVE_TOKEN_ADDRESSES
