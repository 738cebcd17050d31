import json

import responses
from behave import given, then, when
from requests import Session
from responses import matchers

from conversation_sync import ConversationSync
from conversation_sync.config import prepare

UPLOAD = (
    "https://bigquery.googleapis.com/upload/bigquery/v2/projects/bdd-proj/jobs"
    "?uploadType=multipart"
)


class _Logger:
    def info(self, *args, **kwargs):
        pass

    def error(self, *args, **kwargs):
        pass


def _auth(token):
    return matchers.header_matcher({"Authorization": f"token {token}"})


@given('a Looker instance at "{base}"')
def step_looker_instance(context, base):
    context.base = base.rstrip("/")
    context.api = f"{context.base}/api/4.0"
    context.users = []
    context.listing = {}
    context.broken_details = set()
    context.job_id = None
    context.sync_config = {
        "looker": {
            "base_url": context.base,
            "client_id": "bdd-id",
            "client_secret": "bdd-secret",
            "user_query_id": "900",
        },
        "bigquery": {
            "project_id": "bdd-proj",
            "dataset": "bdd_ds",
            "table": "conversations",
            "access_token": "bdd-bq-token",
        },
        "sync": {"worker_pool_size": 2, "timeout": 5},
    }


@given("the user report returns these users:")
def step_user_report(context):
    context.users = [
        {"user.id": int(row["id"]), "user.email": row["email"]} for row in context.table
    ]


@given("user {pid:d} cannot list conversations")
def step_listing_fails(context, pid):
    context.listing[pid] = None


@given("user {pid:d} has no conversations")
def step_no_conversations(context, pid):
    context.listing[pid] = []


@given('user {pid:d} has conversations "{ids}"')
def step_has_conversations(context, pid, ids):
    context.listing[pid] = [i.strip() for i in ids.split(",") if i.strip()]


@given('conversation "{cid}" cannot be fetched')
def step_detail_fails(context, cid):
    context.broken_details.add(cid)


@given('BigQuery accepts load jobs as "{job_id}"')
def step_bigquery_accepts(context, job_id):
    context.job_id = job_id


def _register_mocks(context):
    rm = context.responses
    api = context.api
    rm.add(responses.POST, f"{api}/login", json={"access_token": "admin"})
    rm.add(
        responses.GET,
        f"{api}/queries/900/run/json",
        json=context.users,
        match=[_auth("admin")],
    )
    for row in context.users:
        pid = row["user.id"]
        token = f"user-{pid}"
        rm.add(
            responses.POST,
            f"{api}/login/{pid}",
            json={"access_token": token},
            match=[_auth("admin")],
        )
        ids = context.listing.get(pid, [])
        if ids is None:
            rm.add(
                responses.GET,
                f"{api}/conversations/search",
                status=500,
                body="listing unavailable",
                match=[_auth(token)],
            )
            continue
        rm.add(
            responses.GET,
            f"{api}/conversations/search",
            json=[{"id": cid} for cid in ids],
            match=[_auth(token)],
        )
        for cid in ids:
            if cid in context.broken_details:
                rm.add(
                    responses.GET,
                    f"{api}/conversations/{cid}",
                    status=404,
                    json={"message": "Not found"},
                )
                continue
            rm.add(
                responses.GET,
                f"{api}/conversations/{cid}",
                json={
                    "id": cid,
                    "user_id": pid,
                    "name": f"conversation {cid}",
                    "messages": [],
                },
                match=[_auth(token)],
            )
    rm.add(responses.DELETE, f"{api}/logout", status=204)
    if context.job_id:
        rm.add(
            responses.POST, UPLOAD, json={"jobReference": {"jobId": context.job_id}}
        )


def _run(context, dry_run):
    _register_mocks(context)
    sync = ConversationSync(prepare(context.sync_config), _Logger(), session=Session())
    context.meta = sync.run_historical(dry_run=dry_run)


@when("a historical sync runs")
def step_run(context):
    _run(context, dry_run=False)


@when("a historical dry run sync runs")
def step_run_dry(context):
    _run(context, dry_run=True)


def _load_calls(context):
    return [c for c in context.responses.calls if c.request.url == UPLOAD]


@then("exactly {n:d} load job is submitted")
@then("exactly {n:d} load jobs are submitted")
def step_n_load_jobs(context, n):
    assert len(_load_calls(context)) == n, len(_load_calls(context))


@then("the load job carries {n:d} conversation")
@then("the load job carries {n:d} conversations")
def step_load_carries(context, n):
    req = _load_calls(context)[0].request
    boundary = req.headers["Content-Type"].split("boundary=", 1)[1].encode("ascii")
    data_part = req.body.split(b"--" + boundary)[2]
    ndjson = data_part.split(b"\r\n\r\n", 1)[1].rstrip(b"\r\n")
    rows = [json.loads(line) for line in ndjson.decode("utf-8").splitlines()]
    assert len(rows) == n, rows
    assert context.meta["job_id"] == context.job_id


@then("the run reports {contributing:d} contributing user out of {discovered:d}")
def step_reports_contributing(context, contributing, discovered):
    assert context.meta["principals_contributing"] == contributing, context.meta
    assert context.meta["principals_discovered"] == discovered, context.meta


@then("the run reports {n:d} records")
def step_reports_records(context, n):
    assert context.meta["records"] == n, context.meta


@then("{n:d} Looker sessions were ended")
def step_sessions_ended(context, n):
    deletes = [c for c in context.responses.calls if c.request.method == "DELETE"]
    assert len(deletes) == n, len(deletes)
