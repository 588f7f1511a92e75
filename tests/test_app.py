"""Tests for the Flask application factory and Slack handlers."""

from pathlib import Path
import sys

from flask import Response
from slack_sdk import WebClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:  # pragma: no cover
    sys.path.insert(0, str(ROOT))

import app as app_module  # noqa: E402
from incident_bot.config import AppSettings  # noqa: E402
from incident_bot.incidents import modal  # noqa: E402
from incident_bot.notion_store import CreatedRecord  # noqa: E402
from incident_bot.teams_cache import Team  # noqa: E402


class DummyHandler:
    called = False

    def __init__(self, bolt_app):
        self.bolt_app = bolt_app

    def handle(self, _request):
        DummyHandler.called = True
        return Response("ok", status=200)


class DummySlack:
    def __init__(self, *, healthy=True, fail_open=False):
        self.client = WebClient(token="xoxb-test")
        self.healthy = healthy
        self.fail_open = fail_open
        self.views = []
        self.ephemerals = []

    def auth_test(self):
        if not self.healthy:
            raise RuntimeError("invalid_auth")
        return {"ok": True}

    def open_view(self, *, trigger_id, view):
        if self.fail_open:
            raise RuntimeError("expired_trigger_id")
        self.views.append((trigger_id, view))
        return {"ok": True}

    def post_ephemeral(self, **kwargs):
        self.ephemerals.append(kwargs)
        return {"ok": True}


class DummyStore:
    def __init__(self, *, healthy=True):
        self.healthy = healthy
        self.calls = []

    def retrieve_database(self, database_id=None):
        self.calls.append("retrieve_database")
        if not self.healthy:
            raise RuntimeError("object_not_found")
        return {"id": "db-incidents"}

    def create_page(self, **kwargs):
        self.calls.append("create_page")
        return CreatedRecord(id="page-1", url="https://notion.so/page1")


class DummyTeams:
    def __init__(self):
        self.initialized = False

    def initialize(self):
        self.initialized = True

    def stop(self):
        pass

    def read(self):
        return (Team("t1", "Platform"),)


class DummySaga:
    def __init__(self, store):
        self.store = store
        self.contexts = []

    def run(self, context):
        self.contexts.append(context)
        self.store.create_page()


def _settings(**overrides):
    values = {
        "SLACK_BOT_TOKEN": "xoxb-test",
        "SLACK_SIGNING_SECRET": "secret",
        "NOTION_TOKEN": "secret_notion",
        "NOTION_DB_ID": "db-incidents",
        "APP_ENV": "test",
    }
    values.update(overrides)
    return AppSettings.model_validate(values)


def _services(settings=None, *, slack=None, store=None):
    store = store or DummyStore()
    return app_module.Services(
        settings=settings or _settings(),
        slack=slack or DummySlack(),
        store=store,
        teams=DummyTeams(),
        saga=DummySaga(store),
    )


def _submission_body(values, private_metadata=""):
    return {
        "type": "view_submission",
        "user": {"id": "U1"},
        "view": {
            "callback_id": modal.INCIDENT_MODAL_CALLBACK_ID,
            "private_metadata": private_metadata,
            "state": {"values": values},
        },
    }


def _valid_values():
    return {
        modal.TITLE_BLOCK_ID: {modal.TITLE_ACTION_ID: {"value": "Payment gateway down"}},
        modal.DESCRIPTION_BLOCK_ID: {modal.DESCRIPTION_ACTION_ID: {"value": "502s"}},
        modal.SEVERITY_BLOCK_ID: {modal.SEVERITY_ACTION_ID: {"selected_option": {"value": "High"}}},
        modal.AREA_BLOCK_ID: {modal.AREA_ACTION_ID: {"selected_option": {"value": "Client"}}},
    }


class RecordingRunAsync:
    def __init__(self, events):
        self.events = events
        self.calls = []

    def __call__(self, func, /, *args, trace_id=None, **kwargs):
        self.events.append("run_async")
        self.calls.append((func, args, kwargs, trace_id))

    def drain(self):
        for func, args, kwargs, _trace_id in self.calls:
            func(*args, **kwargs)


def test_slack_events_route_uses_handler(monkeypatch):
    DummyHandler.called = False
    monkeypatch.setattr(app_module, "SlackRequestHandler", DummyHandler)
    flask_app = app_module.create_app(_services())

    response = flask_app.test_client().post("/slack/events", data="{}", content_type="application/json")

    assert response.status_code == 200
    assert response.data == b"ok"
    assert DummyHandler.called is True


def test_create_app_initialises_teams_cache(monkeypatch):
    monkeypatch.setattr(app_module, "SlackRequestHandler", DummyHandler)
    services = _services()

    app_module.create_app(services)

    assert services.teams.initialized is True


def test_healthz_reports_dependencies(monkeypatch):
    monkeypatch.setattr(app_module, "SlackRequestHandler", DummyHandler)
    flask_app = app_module.create_app(_services())

    response = flask_app.test_client().get("/healthz")

    assert response.status_code == 200
    body = response.get_json()
    assert body["ok"] is True
    assert body["slack"] == "up"
    assert body["notion"] == "up"
    assert body["teams_cached"] == 1


def test_healthz_returns_503_when_notion_is_down(monkeypatch):
    monkeypatch.setattr(app_module, "SlackRequestHandler", DummyHandler)
    flask_app = app_module.create_app(_services(store=DummyStore(healthy=False)))

    response = flask_app.test_client().get("/healthz")

    assert response.status_code == 503
    body = response.get_json()
    assert body["notion"] == "down"
    assert body["notion_error"] == "object_not_found"


def test_index_lists_endpoints(monkeypatch):
    monkeypatch.setattr(app_module, "SlackRequestHandler", DummyHandler)
    flask_app = app_module.create_app(_services())

    body = flask_app.test_client().get("/").get_json()

    assert body["name"] == "incident-bot"
    assert body["endpoints"]["health"] == "/healthz"


def test_cron_digest_requires_secret(monkeypatch):
    monkeypatch.setattr(app_module, "SlackRequestHandler", DummyHandler)
    calls = []
    monkeypatch.setattr(app_module, "send_daily_digest", lambda **kwargs: calls.append(kwargs) or True)
    flask_app = app_module.create_app(_services(_settings(CRON_SECRET="s3cret")))
    client = flask_app.test_client()

    denied = client.post("/cron/daily-digest", headers={"Authorization": "Bearer nope"})
    allowed = client.post("/cron/daily-digest", headers={"Authorization": "Bearer s3cret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200
    assert allowed.get_json() == {"ok": True, "sent": True}
    assert len(calls) == 1


def test_submission_acks_before_any_store_call(monkeypatch):
    events = []
    runner = RecordingRunAsync(events)
    monkeypatch.setattr(app_module, "run_async", runner)
    store = DummyStore()
    services = _services(store=store)

    def ack(payload=None):
        events.append(("ack", payload, list(store.calls)))

    body = _submission_body(_valid_values(), '{"sourceChannelId":"C123","sourceMessageTs":"101.000"}')
    app_module._handle_incident_submission(ack=ack, body=body, services=services)

    assert events[0] == ("ack", None, [])
    assert events[1] == "run_async"
    assert store.calls == []

    runner.drain()

    assert store.calls == ["create_page"]
    context = services.saga.contexts[0]
    assert context.destination.channel == "C123"
    assert context.destination.thread_ts == "101.000"


def test_invalid_submission_returns_inline_errors(monkeypatch):
    events = []
    monkeypatch.setattr(app_module, "run_async", RecordingRunAsync(events))
    values = _valid_values()
    values[modal.TITLE_BLOCK_ID] = {modal.TITLE_ACTION_ID: {"value": ""}}
    acks = []

    app_module._handle_incident_submission(ack=acks.append, body=_submission_body(values), services=_services())

    assert acks == [{"response_action": "errors", "errors": {modal.TITLE_BLOCK_ID: "Please enter a title."}}]
    assert events == []


def test_incident_command_opens_modal_after_ack(monkeypatch):
    events = []
    runner = RecordingRunAsync(events)
    monkeypatch.setattr(app_module, "run_async", runner)
    slack = DummySlack()
    services = _services(slack=slack)

    app_module._handle_incident_command(
        ack=lambda: events.append("ack"),
        command={"command": "/incident", "user_id": "U1", "channel_id": "C1", "trigger_id": "trig-1"},
        services=services,
    )
    runner.drain()

    assert events == ["ack", "run_async"]
    trigger_id, view = slack.views[0]
    assert trigger_id == "trig-1"
    assert view["callback_id"] == modal.INCIDENT_MODAL_CALLBACK_ID
    assert "private_metadata" not in view


def test_message_shortcut_prefills_modal(monkeypatch):
    runner = RecordingRunAsync([])
    monkeypatch.setattr(app_module, "run_async", runner)
    slack = DummySlack()
    body = {
        "trigger_id": "trig-2",
        "user": {"id": "U1"},
        "channel": {"id": "C123"},
        "message": {"ts": "101.000", "thread_ts": "100.000", "text": "Checkout is down"},
    }

    app_module._handle_report_message_shortcut(ack=lambda: None, body=body, services=_services(slack=slack))
    runner.drain()

    _trigger_id, view = slack.views[0]
    blocks = {block["block_id"]: block for block in view["blocks"]}
    assert blocks[modal.TITLE_BLOCK_ID]["element"]["initial_value"] == "Checkout is down"
    assert '"sourceThreadTs":"100.000"' in view["private_metadata"]


def test_modal_open_failure_notifies_user(monkeypatch):
    runner = RecordingRunAsync([])
    monkeypatch.setattr(app_module, "run_async", runner)
    slack = DummySlack(fail_open=True)

    app_module._handle_incident_command(
        ack=lambda: None,
        command={"user_id": "U1", "channel_id": "C1", "trigger_id": "trig-1"},
        services=_services(slack=slack),
    )
    runner.drain()

    assert slack.ephemerals == [
        {"channel": "C1", "user": "U1", "text": "❌ Failed to open incident form: expired_trigger_id"}
    ]
