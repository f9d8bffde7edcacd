"""
Per-chain batched reads.

Assets are grouped by chain id, each group becomes a single batched request
issued on its own worker thread, and the results are scattered back into a list
aligned with the input order once every batch has come back. Nothing is written
to the Asset records until the whole pass has succeeded.

Workers are daemon threads: a pass that times out or fails returns control
immediately and leaves any straggling request behind without holding up
interpreter exit.
"""
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, List

import requests
from tqdm import tqdm
from web3.exceptions import Web3Exception

from jooce_lib.errors import (
    AllocationError,
    BatchReadError,
    BatchSizeMismatchError,
    BatchTimeoutError,
    ConfigError,
)
from jooce_lib.models import RawWeight

logger = logging.getLogger(__name__)


@dataclass
class ChainBatch:
    chain_id: int
    reader: Any = None
    indices: List[int] = field(default_factory=list)
    assets: List[Any] = field(default_factory=list)


def group_by_chain(assets, readers=None):
    """chain id → ChainBatch, groups ordered by first appearance."""
    batches = {}
    for i, asset in enumerate(assets):
        batch = batches.get(asset.chain_id)
        if batch is None:
            reader = None
            if readers is not None:
                reader = readers.get(asset.chain_id)
                if reader is None:
                    raise ConfigError(f"No reader configured for chain {asset.chain_id}")
            batch = batches[asset.chain_id] = ChainBatch(asset.chain_id, reader)
        batch.indices.append(i)
        batch.assets.append(asset)
    return batches


def run_concurrently(tasks, max_workers=8, timeout=None, desc="Tasks", progress=True):
    """
    Call every task in {key: callable} on its own daemon thread and collect
    {key: result}.

    At most max_workers tasks run at once. The first failure (in completion
    order) is re-raised; if timeout seconds pass before every task has answered,
    BatchTimeoutError names the keys still pending.
    """
    if not tasks:
        return {}

    done = queue.Queue()
    slots = threading.BoundedSemaphore(max(1, min(max_workers, len(tasks))))

    def worker(key, task):
        with slots:
            try:
                done.put((key, task(), None))
            except Exception as e:
                done.put((key, None, e))

    for key, task in tasks.items():
        threading.Thread(target=worker, args=(key, task), name=f"{desc}-{key}", daemon=True).start()

    deadline = None if timeout is None else time.monotonic() + timeout
    results = {}
    with tqdm(total=len(tasks), desc=desc, disable=not progress) as bar:
        while len(results) < len(tasks):
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                key, value, error = done.get(timeout=remaining)
            except queue.Empty:
                pending = sorted(k for k in tasks if k not in results)
                raise BatchTimeoutError(f"{desc}: {pending} did not answer within {timeout}s") from None
            if error is not None:
                raise error
            results[key] = value
            bar.update(1)
    return results


def run_batches(batches, fetch, max_workers=8, timeout=None, desc="Batches", progress=True):
    """
    Run fetch(batch) for every batch concurrently and wait for all of them.

    The first failure (in completion order) is re-raised and the remaining
    batches are abandoned. A batch returning a different number of results than
    it was given assets raises BatchSizeMismatchError.
    """
    def checked(batch):
        values = list(fetch(batch))
        if len(values) != len(batch.assets):
            raise BatchSizeMismatchError(batch.chain_id, len(batch.assets), len(values))
        return values

    tasks = {chain_id: (lambda b=batch: checked(b)) for chain_id, batch in batches.items()}
    return run_concurrently(tasks, max_workers=max_workers, timeout=timeout, desc=desc, progress=progress)


def scatter(batches, results, size):
    """Place every batch's results back at their assets' original positions."""
    out = [None] * size
    for chain_id, batch in batches.items():
        for i, value in zip(batch.indices, results[chain_id]):
            out[i] = value
    return out


def aggregate(assets, fetch, readers=None, **kwargs):
    batches = group_by_chain(assets, readers)
    results = run_batches(batches, fetch, **kwargs)
    return scatter(batches, results, len(assets))


def read_weights(assets, home_reader, voting, max_workers=8, timeout=None, progress=True):
    """
    relativeWeight(id) numerators aligned with assets. Every group is read from the
    voting contract on the home chain, one multicall per asset chain.
    """
    def fetch(batch):
        logger.info(f"ℹ️ Reading {len(batch.assets)} weights for chain {batch.chain_id}")
        return home_reader.read_relative_weights(voting, [a.asset_id for a in batch.assets])

    return aggregate(assets, fetch, max_workers=max_workers, timeout=timeout,
                     desc="Weights", progress=progress)


def read_symbols(assets, readers, max_workers=8, timeout=None, progress=True):
    """Display tickers aligned with assets; "" where a token's metadata was unreadable."""
    def fetch(batch):
        logger.info(f"ℹ️ Reading {len(batch.assets)} symbols on chain {batch.chain_id}")
        return batch.reader.read_symbols(batch.assets)

    return aggregate(assets, fetch, readers=readers, max_workers=max_workers, timeout=timeout,
                     desc="Symbols", progress=progress)


def read_weights_sum(voting):
    try:
        total = voting.functions.weightsSum().call()
    except (Web3Exception, requests.RequestException) as e:
        raise BatchReadError(f"weightsSum() failed: {e}") from e
    if total == 0:
        raise AllocationError("weightsSum() returned 0; cannot compute relative weights")
    return total


def resolve_assets(assets, readers, voting, settings, progress=True):
    """
    Populate raw_weight and symbol on every asset.

    Weights, symbols and the weightsSum() denominator are read concurrently and
    written back only after all three succeed.
    """
    home_reader = readers.get(settings.home_chain_id)
    if home_reader is None:
        raise ConfigError(f"No reader for home chain {settings.home_chain_id}")

    opts = dict(max_workers=settings.max_workers, timeout=settings.batch_timeout, progress=progress)
    results = run_concurrently({
        "weights": lambda: read_weights(assets, home_reader, voting, **opts),
        "symbols": lambda: read_symbols(assets, readers, **opts),
        "weightsSum": lambda: read_weights_sum(voting),
    }, max_workers=3, timeout=settings.batch_timeout, desc="Resolve", progress=False)
    numerators, symbols, denominator = results["weights"], results["symbols"], results["weightsSum"]

    logger.info(f"ℹ️ Total weight: {denominator}")
    for asset, numerator, symbol in zip(assets, numerators, symbols):
        if asset.raw_weight is None:
            asset.raw_weight = RawWeight(numerator, denominator)
        if asset.symbol is None:
            asset.symbol = symbol
    return assets
