#!/usr/bin/env python3
import os
import sys
import signal
import argparse
import logging

from jooce_lib import checkpoint, config, normalize, pipeline, report
from jooce_lib.errors import AllocationError

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


# Gracefully handle Ctrl+C
def handle_sigint(sig, frame):
    print("\n🛑  Interrupted by user, exiting.")
    sys.exit(0)


def run_update(settings):
    _, voting = pipeline.connect(settings)
    asset_ids = pipeline.fetch_asset_ids(voting)
    receipts = checkpoint.checkpoint_assets(voting.w3, voting, asset_ids, os.getenv("PRIVATE_KEY"))
    logger.info(f"✅ Checkpointed {len(receipts)} of {len(asset_ids)} assets")


def run_compute(settings, policy, save, update):
    if update:
        run_update(settings)

    table = pipeline.run_compute(settings, policy=policy)
    rows = report.table_rows(table, settings)
    report.print_allocation_table(rows)
    logger.info(f"ℹ️ Total allocation: {table.total_allocation} / {table.total_capacity}")

    if save:
        report.save_allocation_table(table, settings)


def run_show(settings, path):
    path = path or os.path.join(settings.output_dir, "allocation_table.json")
    saved = report.load_allocation_table(path)
    logger.info(f"ℹ️ Snapshot from {saved['snapshot_date']}")
    report.print_allocation_table(saved["rows"])


def main(argv=None):
    signal.signal(signal.SIGINT, handle_sigint)

    parser = argparse.ArgumentParser(description="Jooce Governance Weight Manager")
    parser.add_argument("--env-file", type=str, help="Path to .env file (default: search from cwd)")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    compute_parser = subparsers.add_parser("compute", help="Compute the uint16 allocation table")
    compute_parser.add_argument("--update", action="store_true", help="Checkpoint every asset before reading weights")
    compute_parser.add_argument("--policy", choices=normalize.POLICIES, default=normalize.POSITIONAL,
                                help="How leftover units are handed out")
    compute_parser.add_argument("--no-save", action="store_true", help="Print the table without writing it")

    subparsers.add_parser("update", help="Send checkpointAsset transactions only")

    show_parser = subparsers.add_parser("show", help="Print a saved allocation table")
    show_parser.add_argument("--path", type=str, help="Saved table (default: <OUTPUT_DIR>/allocation_table.json)")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    try:
        settings = config.load_settings(args.env_file)
        if args.command == "compute":
            logger.info(f"Computing allocations with {args.policy} remainder policy")
            run_compute(settings, args.policy, save=not args.no_save, update=args.update)
        elif args.command == "update":
            run_update(settings)
        elif args.command == "show":
            run_show(settings, args.path)
    except (AllocationError, FileNotFoundError) as e:
        logger.error(f"❌ {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
