import threading
from typing import Any, Dict, List, Optional

import pandas as pd
from requests import Session

from conversation_sync.config import SyncSettings
from conversation_sync.discovery import discover_principals
from conversation_sync.dispatcher import dispatch
from conversation_sync.errors import RunInProgressError
from conversation_sync.fetcher import fetch_principal_conversations
from conversation_sync.output import aggregate_and_load
from conversation_sync.request_helpers import build_session, log_exception
from conversation_sync.sessions import LookerSessionProvider
from conversation_sync.types import Conversation, Principal, SyncMode, validate_mode


class ConversationSync:
    """Thin orchestrator: login, discover, fan out, load once."""

    def __init__(
        self,
        settings: SyncSettings,
        log,
        session: Optional[Session] = None,
    ):
        self.settings = settings
        self.log = log
        self._session = session
        self._run_lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self.settings.single_flight and self._run_lock.locked()

    def _created_on(self, mode: str) -> Optional[str]:
        if mode != SyncMode.DAILY:
            return None
        return pd.Timestamp.now(tz=self.settings.timezone).strftime("%Y-%m-%d")

    # ------------ run ------------
    def claim(self) -> bool:
        """Take the single-flight slot without blocking.

        Always succeeds when single-flight is off. A successful claim must be
        followed by run_claimed(), which gives the slot back.
        """
        if not self.settings.single_flight:
            return True
        return self._run_lock.acquire(blocking=False)

    def run_claimed(self, mode: str, dry_run: bool = False) -> Dict[str, Any]:
        try:
            return self._run(validate_mode(mode), dry_run)
        finally:
            if self.settings.single_flight:
                self._run_lock.release()

    def run(self, mode: str, dry_run: bool = False) -> Dict[str, Any]:
        mode = validate_mode(mode)
        if not self.claim():
            raise RunInProgressError(
                f"a sync is already running; {mode} run refused"
            )
        return self.run_claimed(mode, dry_run)

    def run_daily(self, dry_run: bool = False) -> Dict[str, Any]:
        return self.run(SyncMode.DAILY, dry_run=dry_run)

    def run_historical(self, dry_run: bool = False) -> Dict[str, Any]:
        return self.run(SyncMode.HISTORICAL, dry_run=dry_run)

    def _run(self, mode: str, dry_run: bool) -> Dict[str, Any]:
        started = pd.Timestamp.now(tz="UTC")
        self.log.info(f"[run_sync] start mode={mode} dry_run={dry_run}")

        ctx: Dict[str, Any] = {"log": self.log, "mode": mode, "dry_run": dry_run}
        sess = self._session or build_session(self.settings.worker_pool_size)
        provider = LookerSessionProvider(ctx, sess, self.settings)

        try:
            created_on = self._created_on(mode)
            admin_token = provider.login()
            try:
                principals = discover_principals(
                    ctx, sess, self.settings, admin_token
                )

                def process(principal: Principal) -> List[Conversation]:
                    return fetch_principal_conversations(
                        ctx, sess, provider, admin_token, principal, created_on
                    )

                results = dispatch(
                    ctx,
                    principals,
                    process,
                    pool_size=self.settings.worker_pool_size,
                )
                summary = aggregate_and_load(
                    ctx, sess, self.settings, results, dry_run=dry_run
                )
            finally:
                provider.end_session(admin_token)
        except Exception as e:
            log_exception(ctx, self.settings.looker_base_url, e, prefix="[run_sync] ")
            raise
        finally:
            if self._session is None:
                sess.close()

        ended = pd.Timestamp.now(tz="UTC")
        self.log.info(
            f"[run_sync] done mode={mode} principals={len(principals)} "
            f"contributing={summary['principals']} records={summary['records']} "
            f"job={summary['job_id']} duration={(ended - started).total_seconds():.3f}s"
        )
        return {
            "mode": mode,
            "dry_run": dry_run,
            "created_on": created_on,
            "principals_discovered": len(principals),
            "principals_contributing": summary["principals"],
            "records": summary["records"],
            "bytes": summary["bytes"],
            "job_id": summary["job_id"],
            "load_submitted": summary["load_submitted"],
            "started_at": started.isoformat(),
            "ended_at": ended.isoformat(),
            "duration_s": float((ended - started).total_seconds()),
        }
