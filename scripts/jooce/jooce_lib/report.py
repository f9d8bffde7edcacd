import os
import json
import logging
import datetime
from decimal import Decimal

logger = logging.getLogger(__name__)

HEADER = ["Asset", "Percentage", "Uint16", "Chain"]
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def table_rows(table, settings):
    """Rows as rendered downstream: header, one row per asset, then the checks row."""
    rows = [HEADER]
    for asset in table.rows:
        rows.append([
            asset.symbol or "",
            float(asset.actual_weight),
            asset.allocation,
            settings.chain_label(asset.chain_id),
        ])
    rows.append(checksum_row(table))
    return rows


def checksum_row(table):
    """1 - sum(fractions) and capacity - sum(units); the second must be 0."""
    return [
        "Checks",
        float(Decimal(1) - table.total_weight),
        table.total_capacity - table.total_allocation,
    ]


def allocation_map(table):
    """token address → uint16 units, as submitted on chain (zero address pinned to 0)."""
    mapping = {ZERO_ADDRESS: 0}
    for asset in table.rows:
        mapping[asset.token_address] = asset.allocation
    return mapping


def build_report(table, settings, snapshot_date=None):
    snapshot_date = snapshot_date or datetime.date.today()
    return {
        "snapshot_date": snapshot_date.strftime("%d/%m/%Y"),
        "total_capacity": table.total_capacity,
        "rows": table_rows(table, settings),
        "assets": [
            {
                "symbol": asset.symbol or "",
                "token": asset.token_address,
                "chain": settings.chain_label(asset.chain_id),
                "asset_id": str(asset.asset_id),
                "relative_weight": None if asset.relative_weight is None else str(asset.relative_weight),
                "actual_weight": str(asset.actual_weight),
                "allocation": asset.allocation,
                "reserved": asset.reserved,
            }
            for asset in table.rows
        ],
        "allocation_map": allocation_map(table),
    }


def save_allocation_table(table, settings, snapshot_date=None):
    """Write the current table plus a dated historical copy; returns the current path."""
    snapshot_date = snapshot_date or datetime.date.today()
    report = build_report(table, settings, snapshot_date)
    date_str = snapshot_date.strftime("%d%m%y")

    current_path = os.path.join(settings.output_dir, "allocation_table.json")
    historical_path = os.path.join(settings.output_dir, "historical", f"allocation_table_{date_str}.json")

    for path in (current_path, historical_path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            json.dump(report, f, indent=2)
        logger.info(f"✅ Saved allocation table to {path}")
    return current_path


def load_allocation_table(path):
    if not os.path.exists(path):
        raise FileNotFoundError(f"{path} not found. Run `compute` first.")
    with open(path) as f:
        return json.load(f)


def format_rows(rows):
    lines = []
    for row in rows:
        name, pct, units = row[0], row[1], row[2]
        chain = row[3] if len(row) > 3 else ""
        if isinstance(pct, float):
            pct = f"{pct:.4%}" if name != "Checks" else f"{pct:.2e}"
        lines.append(f"{name:<12} {pct:>12} {units!s:>8} {chain}")
    return "\n".join(lines)


def print_allocation_table(rows):
    print("\n🏆 Allocation table:")
    print(format_rows(rows))
