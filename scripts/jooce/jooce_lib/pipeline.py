import logging

import requests
from eth_abi.exceptions import DecodingError
from web3.exceptions import Web3Exception

from jooce_lib.aggregate import resolve_assets
from jooce_lib.decode_ids import decode_asset_ids
from jooce_lib.errors import BatchReadError
from jooce_lib.normalize import POSITIONAL, calculate_allocations
from jooce_lib.readers import EvmChainReader, build_readers, voting_contract

logger = logging.getLogger(__name__)


def connect(settings):
    """Home chain reader plus the voting contract bound to it."""
    home = EvmChainReader.from_url(
        settings.home_chain_id,
        settings.rpc_url(settings.home_chain_id),
        timeout=settings.rpc_timeout,
    )
    return home, voting_contract(home.w3, settings.voting_contract_address)


def fetch_asset_ids(voting):
    try:
        asset_ids = voting.functions.assets().call()
    except (Web3Exception, requests.RequestException, DecodingError) as e:
        raise BatchReadError(f"assets() failed: {e}") from e
    logger.info(f"🔍 Voting contract lists {len(asset_ids)} assets")
    return list(asset_ids)


def build_allocation_table(settings, voting, assets, readers, policy=POSITIONAL, progress=True):
    """Resolve weights and symbols for decoded assets, then normalize them."""
    resolve_assets(assets, readers, voting, settings, progress=progress)
    return calculate_allocations(assets, settings, policy=policy)


def run_compute(settings, policy=POSITIONAL, progress=True):
    home, voting = connect(settings)
    assets = decode_asset_ids(fetch_asset_ids(voting))
    readers = build_readers(
        settings,
        {asset.chain_id for asset in assets},
        existing={settings.home_chain_id: home},
    )
    return build_allocation_table(settings, voting, assets, readers, policy=policy, progress=progress)
