# trigger_server.py: HTTP entrypoint (Cloud Run style)
from __future__ import annotations

import logging
import os
import threading

from flask import Flask, request

from conversation_sync import ConversationSync
from conversation_sync.types import SyncMode
from logger.basic_logger import setup_logger
from utils.sync_wrapper import build_sync

logger = logging.getLogger(__name__)


def _run_in_background(sync: ConversationSync, mode: str, dry_run: bool) -> None:
    try:
        sync.run_claimed(mode, dry_run=dry_run)
    except Exception as e:
        logger.error("%s sync failed: %s", mode.capitalize(), e)


def create_app(sync: ConversationSync) -> Flask:
    app = Flask(__name__)

    def _trigger(mode: str):
        dry_run = request.args.get("dry-run") == "true"
        label = mode.capitalize()
        # claimed here so a second request cannot slip in before the run starts
        if not sync.claim():
            logger.info("[trigger] %s sync refused, another sync is running", label)
            return (f"{label} sync refused: a sync is already running\n", 409)

        logger.info("[trigger] Triggering %s sync (Dry Run: %s)", mode, dry_run)
        threading.Thread(
            target=_run_in_background,
            args=(sync, mode, dry_run),
            name=f"{mode}-sync",
            daemon=True,
        ).start()
        return (f"{label} sync triggered\n", 202)

    @app.route("/daily", methods=["POST"])
    def daily():
        return _trigger(SyncMode.DAILY)

    @app.route("/historical", methods=["POST"])
    def historical():
        return _trigger(SyncMode.HISTORICAL)

    return app


def main() -> None:
    log = setup_logger(os.getenv("LOG_LEVEL", "INFO"))
    sync = build_sync(os.getenv("SYNC_CONFIG", "config/sync.yml"), log)
    port = int(os.getenv("PORT", "8080"))
    log.info("Server listening on port %s", port)
    create_app(sync).run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
