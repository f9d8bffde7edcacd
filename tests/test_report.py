import datetime
import json
import os

import pytest

from conftest import make_asset
from jooce_lib.models import RawWeight
from jooce_lib.normalize import calculate_allocations
from jooce_lib.report import (
    HEADER,
    ZERO_ADDRESS,
    allocation_map,
    build_report,
    format_rows,
    load_allocation_table,
    save_allocation_table,
    table_rows,
)

SNAPSHOT = datetime.date(2025, 3, 6)


@pytest.fixture
def table(settings):
    assets = [
        make_asset(i, chain_id=chain, symbol=symbol, raw_weight=RawWeight(n, 100))
        for i, (chain, symbol, n) in enumerate([(1, "PEPE", 50), (8453, "BRETT", 30), (56, "", 20)])
    ]
    return calculate_allocations(assets, settings)


def test_rows_have_header_and_checks(table, settings):
    rows = table_rows(table, settings)
    assert rows[0] == HEADER
    assert len(rows) == len(table.rows) + 2
    checks = rows[-1]
    assert checks[0] == "Checks"
    assert checks[1] == pytest.approx(0.0, abs=1e-12)
    assert checks[2] == 0


def test_rows_carry_chain_labels_and_blank_symbols(table, settings):
    rows = table_rows(table, settings)[1:-1]
    by_symbol = {row[0]: row for row in rows}
    assert by_symbol["PEPE"][3] == "ETHEREUM"
    assert by_symbol["JOOCE"][3] == "BASE"
    assert by_symbol[""][3] == "BSC"
    assert by_symbol["JOOCE"][2] == 1311


def test_allocation_map_pins_zero_address(table):
    mapping = allocation_map(table)
    assert mapping[ZERO_ADDRESS] == 0
    assert sum(mapping.values()) == 65535
    assert len(mapping) == len(table.rows) + 1


def test_save_writes_current_and_historical(table, settings):
    path = save_allocation_table(table, settings, snapshot_date=SNAPSHOT)

    assert path == os.path.join(settings.output_dir, "allocation_table.json")
    historical = os.path.join(settings.output_dir, "historical", "allocation_table_060325.json")
    assert os.path.exists(historical)

    saved = load_allocation_table(path)
    assert saved["snapshot_date"] == "06/03/2025"
    assert saved == json.load(open(historical))
    assert sum(a["allocation"] for a in saved["assets"]) == 65535
    assert saved["assets"][-1]["reserved"] is True
    assert saved["assets"][-1]["relative_weight"] is None


def test_report_is_json_serialisable(table, settings):
    json.dumps(build_report(table, settings, SNAPSHOT))


def test_load_missing_table():
    with pytest.raises(FileNotFoundError):
        load_allocation_table("/nonexistent/allocation_table.json")


def test_format_rows(table, settings):
    text = format_rows(table_rows(table, settings))
    lines = text.splitlines()
    assert lines[0].startswith("Asset")
    assert "PEPE" in lines[1]
    assert "%" in lines[1]
    assert lines[-1].startswith("Checks")
