import threading
import time
from types import SimpleNamespace

import pytest

from jooce_lib.config import Settings
from jooce_lib.models import Asset


def make_asset(index, chain_id=8453, token=None, symbol=None, raw_weight=None):
    token = token or "0x" + f"{index + 1:040x}"
    return Asset(
        asset_id=(chain_id << 160) | int(token, 16),
        token_address=token,
        chain_id=chain_id,
        index=index,
        symbol=symbol,
        raw_weight=raw_weight,
    )


class FakeReader:
    """Chain reader whose answers are derived from the assets it is given."""

    def __init__(self, chain_id, delay=0.0, fail=None, short=False, gate=None):
        self.chain_id = chain_id
        self.delay = delay
        self.fail = fail
        self.short = short
        self.gate = gate
        self.calls = []

    def _wait(self):
        if self.gate is not None:
            self.gate.wait(5)
        if self.delay:
            time.sleep(self.delay)
        if self.fail is not None:
            raise self.fail

    def read_symbols(self, assets):
        self.calls.append(("symbols", [a.index for a in assets]))
        self._wait()
        out = [f"T{a.index}" for a in assets]
        return out[:-1] if self.short else out

    def read_relative_weights(self, voting, asset_ids):
        self.calls.append(("weights", list(asset_ids)))
        self._wait()
        out = [voting.weights[asset_id] for asset_id in asset_ids]
        return out[:-1] if self.short else out


class FakeVoting:
    def __init__(self, weights, total):
        self.weights = weights
        self.total = total
        self.functions = SimpleNamespace(weightsSum=lambda: SimpleNamespace(call=lambda: self.total))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        rpc_urls={},
        max_workers=4,
        batch_timeout=5.0,
        output_dir=str(tmp_path / "out"),
    )


@pytest.fixture
def gate():
    event = threading.Event()
    yield event
    event.set()
