import json
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import requests
from requests import Session
from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary, encode_multipart_formdata

from conversation_sync.config import SyncSettings
from conversation_sync.dispatcher import iter_batches
from conversation_sync.errors import LoadSubmissionError
from conversation_sync.request_helpers import (
    body_preview,
    decode_json,
    log_request,
)
from conversation_sync.small_utils import dig
from conversation_sync.tokens import get_access_token
from conversation_sync.types import Batch

SOURCE_FORMAT = "NEWLINE_DELIMITED_JSON"
WRITE_DISPOSITION = "WRITE_APPEND"


def serialize_ndjson(batches: Iterable[Batch], log=None) -> Tuple[bytes, int]:
    lines = []
    for batch in batches:
        for conv in batch.conversations:
            try:
                # lone surrogates are valid JSON text but not encodable UTF-8
                line = json.dumps(conv.to_row(), ensure_ascii=False).encode("utf-8")
            except (TypeError, ValueError) as e:
                if log is not None:
                    log.error(
                        f"[load] failed to serialize conversation {conv.id}: {e}"
                    )
                continue
            lines.append(line)
    payload = b"".join(line + b"\n" for line in lines)
    return payload, len(lines)


def build_job_config(settings: SyncSettings) -> Dict[str, Any]:
    return {
        "configuration": {
            "load": {
                "destinationTable": settings.destination,
                "sourceFormat": SOURCE_FORMAT,
                "writeDisposition": WRITE_DISPOSITION,
            }
        }
    }


def build_multipart_body(
    job_config: Dict[str, Any], payload: bytes
) -> Tuple[bytes, str]:
    """Encode the job resource and the NDJSON data as multipart/related."""
    boundary = choose_boundary()
    parts = [
        RequestField(
            name="metadata",
            data=json.dumps(job_config),
            headers={"Content-Type": "application/json; charset=UTF-8"},
        ),
        RequestField(
            name="data",
            data=payload,
            headers={"Content-Type": "application/octet-stream"},
        ),
    ]
    body, _ = encode_multipart_formdata(parts, boundary=boundary)
    return body, f"multipart/related; boundary={boundary}"


def submit_load_job(
    ctx: Dict[str, Any],
    sess: Session,
    settings: SyncSettings,
    payload: bytes,
    token: str,
) -> Dict[str, Any]:
    missing = [k for k, v in settings.destination.items() if not v]
    if missing:
        raise LoadSubmissionError(
            f"destination table is not configured (missing {', '.join(missing)})"
        )

    url = settings.upload_url.format(project_id=settings.gcp_project_id)
    body, content_type = build_multipart_body(build_job_config(settings), payload)
    headers = {"Authorization": f"Bearer {token}", "Content-Type": content_type}
    log_request(ctx, "POST", url, {"headers": headers}, prefix="[load] ")
    try:
        resp = sess.post(url, data=body, headers=headers, timeout=settings.timeout)
    except requests.RequestException as e:
        raise LoadSubmissionError(f"load job request failed: {e}") from e

    if resp.status_code != 200:
        raise LoadSubmissionError(
            f"load job creation failed with status {resp.status_code}: {body_preview(resp)}",
            status_code=resp.status_code,
            body=body_preview(resp),
        )
    return decode_json(resp, LoadSubmissionError, "load job creation")


def aggregate_and_load(
    ctx: Dict[str, Any],
    sess: Session,
    settings: SyncSettings,
    results,
    dry_run: bool = False,
    token_fn: Callable[[Dict[str, Any], Session, SyncSettings], str] = get_access_token,
) -> Dict[str, Any]:
    """Drain the results channel and submit at most one load job.

    Blocks until the channel is closed. Dry runs and runs that collected no
    records never touch the warehouse.
    """
    log = ctx["log"]
    batches = list(iter_batches(results))
    principals = len(batches)
    total = sum(len(b) for b in batches)
    summary: Dict[str, Any] = {
        "principals": principals,
        "records": total,
        "bytes": 0,
        "job_id": None,
        "load_submitted": False,
    }

    if dry_run:
        log.info(
            f"[load] Dry Run: would have uploaded {total} total conversations "
            f"from {principals} contributing principals in a single job"
        )
        return summary

    payload, count = serialize_ndjson(batches, log=log)
    summary["records"] = count
    summary["bytes"] = len(payload)
    if count == 0:
        log.info("[load] No rows to upload, skipping job creation")
        return summary

    log.info(f"[load] Attempting single batch load for {count} total rows")
    token = token_fn(ctx, sess, settings)
    job: Optional[Dict[str, Any]] = submit_load_job(ctx, sess, settings, payload, token)
    summary["job_id"] = dig(job, "jobReference.jobId")
    summary["load_submitted"] = True
    log.info(
        f"[load] Created load job {summary['job_id']} for {count} rows "
        f"({summary['bytes']} bytes)"
    )
    return summary
