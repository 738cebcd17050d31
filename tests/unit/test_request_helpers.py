import pytest
from requests import Session

from conversation_sync import request_helpers
from conversation_sync.errors import ListingError


def test_build_url_various_slashes():
    # base with trailing, path with leading
    assert request_helpers.build_url("https://api/", "/v1") == "https://api/v1"
    # base without trailing, path no leading
    assert request_helpers.build_url("https://api", "v1") == "https://api/v1"
    assert (
        request_helpers.build_url("https://looker.test", "api/4.0/login/7")
        == "https://looker.test/api/4.0/login/7"
    )


def test_build_session_sizes_pool_and_disables_retries():
    s = request_helpers.build_session(8)
    assert isinstance(s, Session)
    # verify our adapters were mounted (keys are exactly 'https://' and 'http://')
    adapter = s.adapters["https://"]
    assert s.adapters["http://"] is adapter
    assert adapter._pool_maxsize == 8
    assert adapter.max_retries.total == 0


def test_token_headers():
    assert request_helpers.token_headers("abc") == {"Authorization": "token abc"}


def test_body_preview_truncates(make_response):
    resp = make_response(text="x" * 2000, status_code=500)
    assert len(request_helpers.body_preview(resp)) == 500


def test_check_response_raises_given_error(make_response):
    resp = make_response(text="denied", status_code=403)
    with pytest.raises(ListingError) as err:
        request_helpers.check_response(resp, ListingError, "listing")
    assert err.value.status_code == 403
    assert err.value.body == "denied"
    assert "(status=403)" in str(err.value)


def test_check_response_passes_200(make_response):
    resp = make_response(json_data={"ok": True})
    assert request_helpers.check_response(resp, ListingError, "listing") is resp


def test_decode_json_wraps_value_error(make_response):
    resp = make_response(text="<html>", status_code=200)
    with pytest.raises(ListingError):
        request_helpers.decode_json(resp, ListingError, "listing")


def test_log_request_redacts_sensitive_items(ctx, capture_log):
    request_helpers.log_request(
        ctx,
        "POST",
        "https://api/x",
        {
            "headers": {"Authorization": "token abc", "X-Ok": "1"},
            "params": {"client_secret": "zzz", "q": "hello"},
        },
        prefix="[p] ",
    )
    assert capture_log.infos, "expected an info log line"
    line = capture_log.infos[-1]
    # sensitive redacted
    assert "***REDACTED***" in line
    assert "abc" not in line and "zzz" not in line
    # non-sensitive preserved
    assert "X-Ok" in line and "1" in line
    assert "q" in line and "hello" in line
    # prefix present
    assert line.startswith("[p] POST https://api/x")


def test_log_exception_includes_url_and_stacktrace(ctx, capture_log):
    try:
        raise RuntimeError("boom")
    except Exception as e:
        request_helpers.log_exception(ctx, "https://api/x", e, prefix="[E] ")
    assert capture_log.errors, "expected an error log line"
    err = capture_log.errors[-1]
    assert "https://api/x" in err
    assert "Stack Trace:" in err
    assert err.startswith("[E] ")
