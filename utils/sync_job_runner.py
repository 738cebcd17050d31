import argparse
import json
import logging
import os

from conversation_sync.types import SyncMode
from logger.basic_logger import setup_logger
from utils.sync_wrapper import run_sync


# --------------------------------
# Parse job parameters
# --------------------------------
def _parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Sync Looker conversations into BigQuery with one load job."
    )
    parser.add_argument("-y", "--yaml_path", required=True, help="Path to the sync YAML (e.g. config/sync.yml)")
    parser.add_argument("--mode", choices=list(SyncMode.ALL), default=SyncMode.DAILY)
    parser.add_argument("--dry_run", action="store_true", help="Count records, skip the load job")
    parser.add_argument("--log_level", default="INFO")
    parser.add_argument("--extra_env", action="append", default=[], help="KEY=VALUE; repeatable")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = _parse_args(argv)
    setup_logger(args.log_level)
    log = logging.getLogger("sync_runner")

    for kv in args.extra_env:
        if "=" in kv:
            k, v = kv.split("=", 1)
            os.environ[k] = v
            log.info("Set env %s", k)

    log.info(
        "Starting run: mode=%s yaml=%s dry_run=%s",
        args.mode, args.yaml_path, args.dry_run,
    )
    meta = run_sync(mode=args.mode, yaml_path=args.yaml_path, dry_run=args.dry_run)
    print(json.dumps({"status": "ok", "meta": meta}))


if __name__ == "__main__":
    main()
