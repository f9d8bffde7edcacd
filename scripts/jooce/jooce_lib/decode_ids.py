from web3 import Web3

from jooce_lib.config import SOLANA_CHAIN_ID, SOLANA_SENTINEL_ADDRESS
from jooce_lib.models import Asset

ID_BYTES = 32


def decode_asset_id(asset_id):
    """
    Split a packed uint256 asset id into (token_address, chain_id).

    Layout (big endian): bytes 0..11 = chain id, bytes 12..31 = token address.
    The Solana sentinel address is mapped to SOLANA_CHAIN_ID regardless of the
    high bytes.
    """
    raw = int(asset_id).to_bytes(ID_BYTES, "big")
    token = "0x" + raw[12:].hex()
    if token == SOLANA_SENTINEL_ADDRESS:
        chain_id = SOLANA_CHAIN_ID
    else:
        chain_id = int.from_bytes(raw[:12], "big")
    return Web3.to_checksum_address(token), chain_id


def decode_asset_ids(asset_ids):
    """Decode ids in order; duplicates are kept at their own positions."""
    assets = []
    for i, asset_id in enumerate(asset_ids):
        token, chain_id = decode_asset_id(asset_id)
        assets.append(Asset(asset_id=int(asset_id), token_address=token, chain_id=chain_id, index=i))
    return assets
