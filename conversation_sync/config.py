import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import pandas as pd

_ENV_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

DEFAULT_API_VERSION = "4.0"
DEFAULT_UPLOAD_URL = (
    "https://bigquery.googleapis.com/upload/bigquery/v2/projects/"
    "{project_id}/jobs?uploadType=multipart"
)
DEFAULT_METADATA_TOKEN_URL = (
    "http://metadata.google.internal/computeMetadata/v1/instance/"
    "service-accounts/default/token"
)
WORKER_POOL_SIZE = 50
HTTP_TIMEOUT = 30.0


def expand_env_value(v: Any) -> Any:
    if isinstance(v, str):
        return _ENV_RE.sub(lambda m: os.getenv(m.group(1), m.group(0)), v)
    if isinstance(v, dict):
        return {k: expand_env_value(vv) for k, vv in v.items()}
    if isinstance(v, list):
        return [expand_env_value(x) for x in v]
    return v


def _optional_str(v: Any) -> Optional[str]:
    """Blank strings and placeholders left unexpanded count as unset."""
    if v is None:
        return None
    s = str(v).strip()
    if not s or _ENV_RE.fullmatch(s):
        return None
    return s


def _as_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "on"}
    return bool(v)


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = config.get(name)
    if sec is None:
        return {}
    if not isinstance(sec, dict):
        raise ValueError(f"config section '{name}' must be a mapping")
    return sec


@dataclass(frozen=True)
class SyncSettings:
    looker_base_url: str
    looker_client_id: str
    looker_client_secret: str
    looker_user_query_id: str
    looker_api_version: str = DEFAULT_API_VERSION
    gcp_project_id: Optional[str] = None
    bq_dataset: Optional[str] = None
    bq_table: Optional[str] = None
    gcp_access_token: Optional[str] = None
    upload_url: str = DEFAULT_UPLOAD_URL
    metadata_token_url: str = DEFAULT_METADATA_TOKEN_URL
    worker_pool_size: int = WORKER_POOL_SIZE
    timeout: float = HTTP_TIMEOUT
    timezone: str = "UTC"
    single_flight: bool = False

    @property
    def api_root(self) -> str:
        return f"api/{self.looker_api_version}"

    @property
    def destination(self) -> Dict[str, Optional[str]]:
        return {
            "projectId": self.gcp_project_id,
            "datasetId": self.bq_dataset,
            "tableId": self.bq_table,
        }

    def __repr__(self) -> str:
        # keep secrets out of log lines that format the settings object
        return (
            f"SyncSettings(looker_base_url={self.looker_base_url!r}, "
            f"looker_user_query_id={self.looker_user_query_id!r}, "
            f"destination={self.gcp_project_id}.{self.bq_dataset}.{self.bq_table}, "
            f"worker_pool_size={self.worker_pool_size}, timeout={self.timeout}, "
            f"single_flight={self.single_flight})"
        )


def prepare(config: Dict[str, Any]) -> SyncSettings:
    """Validate a raw config mapping and return the immutable run settings."""
    config = expand_env_value(config or {})
    looker = _section(config, "looker")
    bq = _section(config, "bigquery")
    sync = _section(config, "sync")

    required = {
        "base_url": _optional_str(looker.get("base_url")),
        "client_id": _optional_str(looker.get("client_id")),
        "client_secret": _optional_str(looker.get("client_secret")),
        "user_query_id": _optional_str(looker.get("user_query_id")),
    }
    missing = sorted(k for k, v in required.items() if not v)
    if missing:
        raise ValueError(
            f"looker config must define non-empty: {', '.join('looker.' + m for m in missing)}"
        )

    pool_size = int(sync.get("worker_pool_size", WORKER_POOL_SIZE))
    if pool_size < 1:
        raise ValueError("sync.worker_pool_size must be >= 1")
    timeout = float(sync.get("timeout", HTTP_TIMEOUT))
    if timeout <= 0:
        raise ValueError("sync.timeout must be > 0")
    timezone = _optional_str(sync.get("timezone")) or "UTC"
    try:
        pd.Timestamp.now(tz=timezone)
    except (KeyError, ValueError, TypeError) as e:
        raise ValueError(f"sync.timezone is not a known time zone: {timezone!r}") from e

    return SyncSettings(
        looker_base_url=required["base_url"],
        looker_client_id=required["client_id"],
        looker_client_secret=required["client_secret"],
        looker_user_query_id=required["user_query_id"],
        looker_api_version=str(
            looker.get("api_version") or DEFAULT_API_VERSION
        ),
        gcp_project_id=_optional_str(bq.get("project_id")),
        bq_dataset=_optional_str(bq.get("dataset")),
        bq_table=_optional_str(bq.get("table")),
        gcp_access_token=_optional_str(bq.get("access_token")),
        upload_url=_optional_str(bq.get("upload_url")) or DEFAULT_UPLOAD_URL,
        metadata_token_url=_optional_str(bq.get("metadata_token_url"))
        or DEFAULT_METADATA_TOKEN_URL,
        worker_pool_size=pool_size,
        timeout=timeout,
        timezone=timezone,
        single_flight=_as_bool(sync.get("single_flight", False)),
    )
