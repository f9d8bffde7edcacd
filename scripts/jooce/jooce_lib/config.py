import os
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from dotenv import load_dotenv

from jooce_lib.errors import ConfigError

# ── Protocol constants ───────────────────────────────────────────────────────────
VOTING_CONTRACT_ADDRESS = "0xdD5CB392A549644295862f96f25484a56FB2e6a8"
MULTICALL3_ADDRESS      = "0xcA11bde05977b3631167028862bE2a173976CA11"
METADATA_PROGRAM_ID     = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"

BASE_CHAIN_ID   = 8453
SOLANA_CHAIN_ID = 1151111081099710
# Asset ids carrying this token address belong to Solana whatever their high bytes say
SOLANA_SENTINEL_ADDRESS = "0xa697e272a73744b343528c3bc4702f2565b2f422"

TOTAL_CAPACITY      = 65535  # u16::MAX
RESERVED_ALLOCATION = 1311
RESERVED_WEIGHT     = Decimal("0.02")
RESERVED_SYMBOL     = "JOOCE"
RESERVED_ADDRESS    = "0x100CE3E3391C00B6A52911313A4Ea8D23c8a38D8"
HEADROOM            = Decimal("0.98")
MIN_RELATIVE_WEIGHT = Decimal("0.005")
SCALE               = 10_000_000_000 * 10**18

EXCLUDED_ADDRESSES = frozenset({
    "0x576e2bed8f7b46d34016198911cdf9886f78bea7",
})

# chain id → env var holding its RPC url
CHAIN_RPC_ENV = {
    SOLANA_CHAIN_ID: "SOLANA_RPC",
    BASE_CHAIN_ID:   "BASE_RPC",
    1:               "ETHEREUM_RPC",
    56:              "BINANCE_RPC",
    43114:           "AVALANCHE_RPC",
    10:              "OPTIMISM_RPC",
    42161:           "ARBITRUM_RPC",
}

CHAIN_LABELS = {
    SOLANA_CHAIN_ID: "SOLANA",
    BASE_CHAIN_ID:   "BASE",
    1:               "ETHEREUM",
    56:              "BSC",
    43114:           "AVALANCHE",
    10:              "OPTIMISM",
    42161:           "ARBITRUM",
}

# EVM-side token address (lowercase) → Solana mint it represents
SOLANA_MINTS = {
    "0x6a851667b20800988c0ce34276f63f86f085bb2c": "MEW1gQWJ3nEXg2qgERiKu7FAFj79PHvQVREQUzScPP5",
    "0xaf78c51362ee75477aa11fc660d1955dd34f37b8": "2qEHjDLDLbuBgRYvsxhc5D6uDWAivNFZGan56P1tpump",
    "0xd29e4552ed325ab75a99cc661c280625d5b38ce9": "9BB6NFEcjBCtnNLFko2FqVQBq8HHM13kCyYcdQbgpump",
    "0xc069d48749327243b699c1b91d22613dc39551e4": "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm",
    "0xa48f7855a0b3200b1d0ca84c12399171dd456624": "2zMMhcVQEXDtdE6vsFS7S7D5oUodfJHE8vd1gnBouauv",
    "0xf9a337194f9278275ee28cefeb58adadbcb62572": "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr",
    "0x4520a52cfb5dad1a6aead5f43c96ed2a9760e77e": "HeLp6NuQkmYB4pYWo2zYs22mESHXPQYzXbB8n4V98jwC",
    "0x2107895cd820573cdc943df2a26910945555c29d": "63LfDmNb3MQ8mw9MtZ2To9bEA2M71kZUUGq5tiJxcqj9",
    "0xf3bc9c7daa0aeb694c95d65c2fe86137695f2a59": "ED5nyyWEzpPPiWimP8vYm7sD7TD3LAt3Q3gRTWHzPJBY",
    "0x75939e0a1eb2321dbaccdb2e637ddba29098eb16": "CzLSujWBLFsSjncfkh59rUFqvafWcY5tzedWJSuypump",
    "0xdd2ddf33d0936a2a4e8316dfc89f538fcc1fa5b1": "ukHH6c7mMyiWCf1b9pnWe25TSpkDDt3H5pQZgZ74J82",
    "0xffeba30f39faa3601911090d5ce7388d719109c9": "A8C3xuqscfmyLrte3VmTqrAq8kgMASius9AFNANwpump",
    "0x9bcbe99c5de789156aa30ee47c0447beac2a3b4c": "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
    "0x735958915df64598461a5415ad17eb9a3f98f5ac": "Dz9mQ9NzkBcCsuGPFJ3r1bS4wgqKMHBPiVuniW8Mbonk",
}


def _frozen(mapping):
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class Settings:
    """
    Everything the aggregator and normalizer need, resolved once at startup.
    Tables are read-only mappings so a Settings can be shared between threads.
    """
    rpc_urls: MappingProxyType = field(default_factory=lambda: _frozen({}))
    chain_labels: MappingProxyType = field(default_factory=lambda: _frozen(CHAIN_LABELS))
    solana_mints: MappingProxyType = field(default_factory=lambda: _frozen(SOLANA_MINTS))
    excluded_addresses: frozenset = EXCLUDED_ADDRESSES
    voting_contract_address: str = VOTING_CONTRACT_ADDRESS
    home_chain_id: int = BASE_CHAIN_ID
    min_relative_weight: Decimal = MIN_RELATIVE_WEIGHT
    headroom: Decimal = HEADROOM
    scale: int = SCALE
    total_capacity: int = TOTAL_CAPACITY
    reserved_allocation: int = RESERVED_ALLOCATION
    reserved_weight: Decimal = RESERVED_WEIGHT
    reserved_symbol: str = RESERVED_SYMBOL
    reserved_address: str = RESERVED_ADDRESS
    rpc_timeout: int = 60
    batch_timeout: float = 180.0
    max_workers: int = 8
    output_dir: str = "data/jooce"

    def rpc_url(self, chain_id):
        url = self.rpc_urls.get(chain_id)
        if not url:
            env_name = CHAIN_RPC_ENV.get(chain_id, f"<rpc for chain {chain_id}>")
            raise ConfigError(f"No RPC endpoint for chain {chain_id}; set {env_name} in .env")
        return url

    def chain_label(self, chain_id):
        return self.chain_labels.get(chain_id, str(chain_id))

    def is_excluded(self, token_address):
        return token_address.lower() in self.excluded_addresses


def load_settings(env_file=None):
    """Build Settings from the process environment (after loading .env)."""
    load_dotenv(env_file)

    rpc_urls = {}
    for chain_id, env_name in CHAIN_RPC_ENV.items():
        url = os.getenv(env_name)
        if url:
            rpc_urls[chain_id] = url

    try:
        rpc_timeout   = int(os.getenv("RPC_TIMEOUT", 60))
        batch_timeout = float(os.getenv("BATCH_TIMEOUT", 180))
        max_workers   = int(os.getenv("MAX_WORKERS", 8))
    except ValueError as e:
        raise ConfigError(f"Invalid numeric setting in environment: {e}") from e

    if max_workers < 1:
        raise ConfigError("MAX_WORKERS must be at least 1")

    return Settings(
        rpc_urls=_frozen(rpc_urls),
        voting_contract_address=os.getenv("VOTING_CONTRACT_ADDRESS", VOTING_CONTRACT_ADDRESS),
        rpc_timeout=rpc_timeout,
        batch_timeout=batch_timeout,
        max_workers=max_workers,
        output_dir=os.getenv("OUTPUT_DIR", "data/jooce"),
    )
