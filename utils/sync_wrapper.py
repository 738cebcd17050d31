# sync_wrapper.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from conversation_sync import ConversationSync
from conversation_sync.config import SyncSettings, prepare
from conversation_sync.types import validate_mode
from utils.config_reader import ConfigReader

LOG = logging.getLogger("sync_wrapper")


def load_settings(yaml_path: str, log: logging.Logger = LOG) -> SyncSettings:
    """Read the YAML at ``yaml_path`` and build the run settings."""
    raw = ConfigReader(log, Path(yaml_path)).load_configurations().configs_data
    settings = prepare(raw)
    log.info("Configuration loaded successfully: %r", settings)
    return settings


def build_sync(yaml_path: str, log: logging.Logger = LOG) -> ConversationSync:
    return ConversationSync(settings=load_settings(yaml_path, log), log=log)


def run_sync(
    mode: str,
    yaml_path: str,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """
    Execute one sync and return its metadata dict.

    Args:
        mode:      'daily' (conversations created today) or 'historical'.
        yaml_path: Path to the sync YAML (e.g. 'config/sync.yml').
        dry_run:   Fetch and transform everything but skip the load job.
    """
    mode = validate_mode(mode)
    sync = build_sync(yaml_path)
    meta = sync.run(mode, dry_run=dry_run)
    LOG.info("Sync metadata: %s", json.dumps(meta))
    return meta
