"""Application entry point for the Slack incident bot."""

from __future__ import annotations

import atexit
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from uuid import uuid4

from flask import Flask, jsonify, request
from slack_bolt import App as SlackApp
from slack_bolt.adapter.flask import SlackRequestHandler
import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

from incident_bot.actions import parse_message_shortcut, parse_trigger_context
from incident_bot.background import configure_executor, run_async, shutdown_background
from incident_bot.config import AppSettings, get_settings
from incident_bot.digest import send_daily_digest, start_digest_scheduler, today_in
from incident_bot.errors import SubmissionValidationError, describe_error
from incident_bot.identity import IdentityResolver
from incident_bot.incidents.modal import INCIDENT_MODAL_CALLBACK_ID, build_incident_modal
from incident_bot.incidents.orchestrator import IncidentSubmissionSaga, build_submission_context
from incident_bot.incidents.submission import parse_incident_submission
from incident_bot.incidents.threads import ThreadFetcher
from incident_bot.logging_config import configure_logging
from incident_bot.notion_store import NotionStore
from incident_bot.security import AUTHORIZATION_HEADER, is_authorized_cron_request
from incident_bot.slack_client import SlackClient
from incident_bot.teams_cache import TeamsCache, fetch_active_teams

APP_NAME = "incident-bot"
INCIDENT_COMMAND = "/incident"
REPORT_SHORTCUT_CALLBACK_ID = "report_as_incident"
MODAL_OPEN_FAILED_TEXT = "❌ Failed to open incident form: {error}"

_LOGGING_CONFIGURED = False


@dataclass
class Services:
    """Long-lived collaborators shared by every handler."""

    settings: AppSettings
    slack: SlackClient
    store: NotionStore
    teams: TeamsCache
    saga: IncidentSubmissionSaga


def build_services(settings: AppSettings) -> Services:
    slack = SlackClient(token=settings.bot_token, timeout=settings.slack_timeout_seconds)
    store = NotionStore(
        incidents_db_id=settings.incidents_db_id,
        teams_db_id=settings.teams_db_id,
        token=settings.notion_token,
        timeout_ms=settings.notion_timeout_ms,
    )
    teams = TeamsCache(
        lambda: fetch_active_teams(store),
        interval=timedelta(seconds=settings.teams_refresh_seconds),
    )
    saga = IncidentSubmissionSaga(
        slack=slack,
        store=store,
        identity=IdentityResolver(store),
        threads=ThreadFetcher(slack, tz=settings.tzinfo),
        teams=teams,
        thread_limit=settings.thread_message_limit,
        workspace_domain=settings.workspace_domain,
        digest_channel_id=settings.digest_channel_id,
        process_note_url=settings.resolution_process_url,
    )
    return Services(settings=settings, slack=slack, store=store, teams=teams, saga=saga)


def _create_bolt_app(services: Services) -> SlackApp:
    """Initialise the Slack Bolt application on the shared WebClient."""

    return SlackApp(
        client=services.slack.client,
        signing_secret=services.settings.signing_secret,
        token_verification_enabled=False,
    )


def _register_error_handlers(flask_app: Flask) -> None:
    """Register a JSON error handler that attaches a trace identifier."""

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[override]
        trace_id = str(uuid4())
        structlog.get_logger().error("unhandled_application_error", trace_id=trace_id, exc_info=error)
        response = jsonify({"error": "internal_server_error", "trace_id": trace_id})
        response.status_code = 500
        return response


def _open_incident_modal(
    services: Services,
    *,
    trigger_id: str,
    user_id: str,
    channel_id: str | None,
    initial_title: str | None = None,
    initial_description: str | None = None,
    private_metadata: str | None = None,
) -> None:
    log = structlog.get_logger().bind(user_id=user_id)
    view = build_incident_modal(
        teams=services.teams.read(),
        today=today_in(services.settings.tzinfo),
        initial_title=initial_title,
        initial_description=initial_description,
        private_metadata=private_metadata,
    )
    try:
        services.slack.open_view(trigger_id=trigger_id, view=view)
    except Exception as exc:
        error = describe_error(exc)
        log.error("incident_modal_open_failed", error=error)
        try:
            services.slack.post_ephemeral(
                channel=channel_id or user_id,
                user=user_id,
                text=MODAL_OPEN_FAILED_TEXT.format(error=error),
            )
        except Exception as notify_exc:
            log.warning("incident_modal_error_notice_failed", error=describe_error(notify_exc))
        return
    log.info("incident_modal_opened", prefilled=initial_title is not None)


def _handle_incident_command(ack, command, *, services: Services) -> None:
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    try:
        ack()
        user_id = command.get("user_id") or ""
        structlog.get_logger().info("slash_command_received", command=command.get("command"), user_id=user_id)
        run_async(
            _open_incident_modal,
            services,
            trigger_id=command.get("trigger_id"),
            user_id=user_id,
            channel_id=command.get("channel_id"),
            trace_id=trace_id,
        )
    finally:
        unbind_contextvars("trace_id")


def _handle_report_message_shortcut(ack, body, *, services: Services) -> None:
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    log = structlog.get_logger()
    try:
        ack()
        try:
            shortcut = parse_message_shortcut(body)
        except ValueError as exc:
            log.warning("message_shortcut_invalid", error=str(exc))
            return

        log.info(
            "message_shortcut_received",
            user_id=shortcut.user_id,
            channel=shortcut.channel_id,
            message_ts=shortcut.message_ts,
            thread_ts=shortcut.thread_ts,
        )
        run_async(
            _open_incident_modal,
            services,
            trigger_id=shortcut.trigger_id,
            user_id=shortcut.user_id,
            channel_id=shortcut.channel_id,
            initial_title=shortcut.initial_title,
            initial_description=shortcut.text,
            private_metadata=shortcut.to_metadata(),
            trace_id=trace_id,
        )
    finally:
        unbind_contextvars("trace_id")


def _handle_incident_submission(ack, body, *, services: Services) -> None:
    trace_id = str(uuid4())
    bind_contextvars(trace_id=trace_id)
    try:
        view = body.get("view") or {}
        user_id = (body.get("user") or {}).get("id") or ""
        log = structlog.get_logger().bind(user_id=user_id)

        trigger = parse_trigger_context(view.get("private_metadata"))
        state_payload = {"values": (view.get("state") or {}).get("values") or {}}
        try:
            form = parse_incident_submission(
                state_payload,
                user_id=user_id,
                trigger=trigger,
                channel_id=trigger.source_channel_id or user_id,
            )
        except SubmissionValidationError as exc:
            log.info("incident_submission_rejected", fields=sorted(exc.errors))
            ack({"response_action": "errors", "errors": exc.errors})
            return

        ack()
        log.info("incident_submission_accepted", trigger=trigger.source.value, severity=form.severity.value)
        run_async(services.saga.run, build_submission_context(form, trigger), trace_id=trace_id)
    finally:
        unbind_contextvars("trace_id")


def _register_slack_handlers(bolt_app: SlackApp, services: Services) -> None:
    @bolt_app.command(INCIDENT_COMMAND)
    def handle_incident(ack, command):
        _handle_incident_command(ack=ack, command=command, services=services)

    @bolt_app.shortcut(REPORT_SHORTCUT_CALLBACK_ID)
    def handle_report_message(ack, body):
        _handle_report_message_shortcut(ack=ack, body=body, services=services)

    @bolt_app.view(INCIDENT_MODAL_CALLBACK_ID)
    def handle_submission(ack, body):
        _handle_incident_submission(ack=ack, body=body, services=services)


def _start_background_jobs(services: Services) -> None:
    settings = services.settings
    configure_executor(settings.background_workers)
    atexit.register(shutdown_background)

    services.teams.initialize()
    atexit.register(services.teams.stop)

    if settings.digest_channel_id:
        scheduler = start_digest_scheduler(
            lambda: _run_daily_digest(services),
            hour=settings.digest_hour,
            timezone=settings.tzinfo,
        )
        atexit.register(scheduler.shutdown, wait=False)


def _run_daily_digest(services: Services) -> bool:
    return send_daily_digest(
        slack=services.slack,
        store=services.store,
        teams=services.teams,
        channel_id=services.settings.digest_channel_id,
        today=today_in(services.settings.tzinfo),
    )


def _load_version() -> str:
    version_file = Path(__file__).resolve().parent / "VERSION"
    if version_file.exists():
        return version_file.read_text(encoding="utf-8").strip()
    return "unknown"


def create_app(services: Services | None = None) -> Flask:
    """Create and configure the Flask application."""

    global _LOGGING_CONFIGURED
    if services is None:
        services = build_services(get_settings())
    settings = services.settings

    if not _LOGGING_CONFIGURED:
        configure_logging(settings.log_level, pretty=settings.app_env == "development")
        _LOGGING_CONFIGURED = True

    bolt_app = _create_bolt_app(services)
    handler = SlackRequestHandler(bolt_app)

    flask_app = Flask(__name__)
    flask_app.config["APP_VERSION"] = _load_version()

    _register_error_handlers(flask_app)
    _register_slack_handlers(bolt_app, services)
    _start_background_jobs(services)

    @flask_app.route("/slack/events", methods=["POST"])
    def slack_events():
        # Bolt checks the signature and returns as soon as a listener acks.
        return handler.handle(request)

    @flask_app.route("/healthz", methods=["GET"])
    def healthz():
        health: dict[str, object] = {"ok": True, "version": flask_app.config.get("APP_VERSION", "unknown")}

        try:
            services.slack.auth_test()
            health["slack"] = "up"
        except Exception as exc:
            health["slack"] = "down"
            health["slack_error"] = describe_error(exc)
            health["ok"] = False

        try:
            services.store.retrieve_database()
            health["notion"] = "up"
        except Exception as exc:
            health["notion"] = "down"
            health["notion_error"] = describe_error(exc)
            health["ok"] = False

        health["teams_cached"] = len(services.teams.read())
        status = 200 if health["ok"] else 503
        return jsonify(health), status

    @flask_app.route("/", methods=["GET"])
    def index():
        return jsonify(
            {
                "name": APP_NAME,
                "version": flask_app.config.get("APP_VERSION", "unknown"),
                "endpoints": {
                    "slack_events": "/slack/events",
                    "health": "/healthz",
                    "daily_digest": "/cron/daily-digest",
                },
            }
        )

    @flask_app.route("/cron/daily-digest", methods=["POST"])
    def cron_daily_digest():
        if not is_authorized_cron_request(request.headers.get(AUTHORIZATION_HEADER), settings.cron_secret):
            response = jsonify({"error": "unauthorized"})
            response.status_code = 401
            return response

        sent = _run_daily_digest(services)
        return jsonify({"ok": True, "sent": sent})

    return flask_app


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    application = create_app()
    application.run(host="0.0.0.0", port=get_settings().port)
