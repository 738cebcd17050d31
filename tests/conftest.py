import threading
from logging import Logger

import pytest

from conversation_sync.config import prepare
from logger.basic_logger import setup_logger


# ----- simple logger used across tests -----
class CaptureLog:
    def __init__(self):
        self._lock = threading.Lock()
        self.infos = []
        self.errors = []

    def info(self, msg, *a, **k):
        with self._lock:
            self.infos.append(msg % a if a else msg)

    def error(self, msg, *a, **k):
        with self._lock:
            self.errors.append(msg % a if a else msg)


@pytest.fixture
def capture_log():
    return CaptureLog()


@pytest.fixture
def ctx(capture_log):
    return {"log": capture_log, "mode": "historical", "dry_run": False}


# ----- settings -----
BASE_URL = "https://looker.test"


def raw_config(**sync_overrides):
    return {
        "looker": {
            "base_url": BASE_URL,
            "client_id": "cid",
            "client_secret": "csecret",
            "user_query_id": "77",
        },
        "bigquery": {
            "project_id": "proj",
            "dataset": "ds",
            "table": "conversations",
            "access_token": "bq-token",
        },
        "sync": {"worker_pool_size": 4, "timeout": 5, **sync_overrides},
    }


@pytest.fixture
def settings():
    return prepare(raw_config())


@pytest.fixture
def make_settings():
    def _make(**sync_overrides):
        return prepare(raw_config(**sync_overrides))

    return _make


# ----- lightweight HTTP fakes -----
class FakeResponse:
    def __init__(self, *, json_data=None, status_code=200, text=None):
        self._json = json_data
        self.status_code = status_code
        self.text = text if text is not None else ("" if json_data is None else str(json_data))

    def json(self):
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json

    def close(self):
        pass


@pytest.fixture(scope="session", autouse=True)
def log() -> Logger:
    log = setup_logger()
    return log


@pytest.fixture
def raw_cfg():
    return raw_config()


# ----- multipart/related bodies sent to the load endpoint -----
def split_multipart(body: bytes, content_type: str):
    """Return [(headers_text, content_bytes), ...] for each part."""
    boundary = content_type.split("boundary=", 1)[1].encode("ascii")
    parts = []
    for chunk in body.split(b"--" + boundary)[1:]:
        if chunk.startswith(b"--"):
            break
        head, _, content = chunk.lstrip(b"\r\n").partition(b"\r\n\r\n")
        if content.endswith(b"\r\n"):
            content = content[:-2]
        parts.append((head.decode("utf-8"), content))
    return parts


@pytest.fixture
def multipart_parts():
    return split_multipart


@pytest.fixture
def make_response():
    return FakeResponse
