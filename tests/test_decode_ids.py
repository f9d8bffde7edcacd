import random

import pytest
from web3 import Web3

from jooce_lib.config import SOLANA_CHAIN_ID, SOLANA_SENTINEL_ADDRESS
from jooce_lib.decode_ids import decode_asset_id, decode_asset_ids

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def pack(chain_id, token):
    return (chain_id << 160) | int(token, 16)


def test_decodes_chain_and_token():
    token, chain_id = decode_asset_id(pack(8453, USDC))
    assert token == USDC
    assert chain_id == 8453


def test_token_is_checksummed():
    token, _ = decode_asset_id(pack(1, USDC.lower()))
    assert token == Web3.to_checksum_address(USDC)


@pytest.mark.parametrize("high", [0, 1, 8453, 2**96 - 1])
def test_sentinel_always_maps_to_solana(high):
    token, chain_id = decode_asset_id(pack(high, SOLANA_SENTINEL_ADDRESS))
    assert chain_id == SOLANA_CHAIN_ID
    assert token.lower() == SOLANA_SENTINEL_ADDRESS


def test_decoding_is_total_over_256_bits():
    rng = random.Random(1234)
    samples = [0, 1, 2**160 - 1, 2**160, 2**256 - 1] + [rng.getrandbits(256) for _ in range(200)]
    for value in samples:
        token, chain_id = decode_asset_id(value)
        low = value & (2**160 - 1)
        assert int(token, 16) == low
        if token.lower() != SOLANA_SENTINEL_ADDRESS:
            assert chain_id == value >> 160
        assert 0 <= chain_id < 2**96 or chain_id == SOLANA_CHAIN_ID


def test_batch_keeps_order_and_duplicates():
    ids = [pack(1, USDC), pack(8453, USDC), pack(1, USDC)]
    assets = decode_asset_ids(ids)
    assert [a.chain_id for a in assets] == [1, 8453, 1]
    assert [a.index for a in assets] == [0, 1, 2]
    assert assets[0].asset_id == assets[2].asset_id
    assert all(a.raw_weight is None and a.symbol is None and a.allocation is None for a in assets)


def test_empty_input():
    assert decode_asset_ids([]) == []
