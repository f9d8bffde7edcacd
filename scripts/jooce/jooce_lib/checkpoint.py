import logging

import requests
from tqdm import tqdm
from web3.exceptions import Web3Exception

from jooce_lib.errors import ConfigError

logger = logging.getLogger(__name__)


def checkpoint_assets(w3, voting, asset_ids, private_key, timeout=120):
    """
    Send checkpointAsset(id) for every id, one at a time, waiting for each receipt.
    A failed transaction is logged and the loop moves on to the next id.
    Returns {asset_id: receipt} for the ones that were mined successfully.
    """
    if not private_key:
        raise ConfigError("PRIVATE_KEY must be set in .env to send checkpoint transactions")
    account = w3.eth.account.from_key(private_key)

    receipts = {}
    for asset_id in tqdm(asset_ids, desc="Checkpointing"):
        try:
            tx = voting.functions.checkpointAsset(asset_id).build_transaction({
                "from": account.address,
                "nonce": w3.eth.get_transaction_count(account.address, "pending"),
            })
            signed = account.sign_transaction(tx)
            tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except (Web3Exception, requests.RequestException, ValueError) as e:
            logger.error(f"❌ Error with checkpoint tx for asset {asset_id}: {e}")
            continue

        if receipt["status"] != 1:
            logger.error(f"❌ Checkpoint tx {tx_hash.hex()} for asset {asset_id} reverted")
            continue
        logger.info(f"✅ Checkpointed asset {asset_id} in block {receipt['blockNumber']}")
        receipts[asset_id] = receipt
    return receipts
