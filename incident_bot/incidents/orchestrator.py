"""Incident submission workflow, from a validated modal to a linked Notion page.

The workflow runs after the modal submission has been acknowledged. Only the
page creation is critical; every other step may fail on its own without
undoing what came before it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, List

import structlog

from incident_bot.actions import determine_destination
from incident_bot.errors import IncidentBotError, describe_error
from incident_bot.identity import LookupResult
from incident_bot.notion_store import CreatedRecord
from incident_bot.saga import SagaReport, SagaStep, run_saga

from .links import backfill_slack_link, build_slack_message_url
from .messages import (
    build_confirmation_message,
    build_digest_announcement,
    build_ephemeral_ack,
    build_error_text,
)
from .models import (
    Destination,
    IncidentFormData,
    PostedMessage,
    ThreadMessage,
    ThreadMessagesResult,
    TriggerContext,
)
from .records import build_incident_properties
from .template import build_incident_page_blocks, build_thread_context_blocks
from .threads import DEFAULT_THREAD_LIMIT

UNKNOWN_REPORTER = "Unknown"


class ThreadContextUnavailable(IncidentBotError):
    """Raised when the source thread could not be read."""


class ConfirmationUnlinkable(IncidentBotError):
    """Raised when Slack accepted the confirmation but returned no timestamp."""


@dataclass
class SubmissionContext:
    """Mutable state shared by the steps of one submission."""

    form: IncidentFormData
    trigger: TriggerContext
    destination: Destination
    reporter_lookup: LookupResult | None = None
    thread: ThreadMessagesResult | None = None
    record: CreatedRecord | None = None
    confirmation: PostedMessage | None = None
    confirmation_url: str | None = None

    @property
    def thread_messages(self) -> List[ThreadMessage]:
        return self.thread.messages if self.thread is not None else []


@dataclass(frozen=True)
class SubmissionResult:
    report: SagaReport
    context: SubmissionContext

    @property
    def succeeded(self) -> bool:
        return self.report.succeeded and self.context.record is not None

    @property
    def record(self) -> CreatedRecord | None:
        return self.context.record


def build_submission_context(form: IncidentFormData, trigger: TriggerContext) -> SubmissionContext:
    """Work out where to confirm and pin it on the form before anything runs."""

    destination = determine_destination(trigger, form.created_by)
    form = form.model_copy(update={"slack_channel_id": destination.channel, "trigger": trigger.source})
    return SubmissionContext(form=form, trigger=trigger, destination=destination)


def _has_thread_reference(context: SubmissionContext) -> bool:
    return context.trigger.is_message_action and bool(context.trigger.thread_ts)


class IncidentSubmissionSaga:
    """Run the post-acknowledgement steps of an incident submission."""

    def __init__(
        self,
        *,
        slack,
        store,
        identity,
        threads,
        teams,
        thread_limit: int = DEFAULT_THREAD_LIMIT,
        workspace_domain: str | None = None,
        digest_channel_id: str | None = None,
        process_note_url: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._slack = slack
        self._store = store
        self._identity = identity
        self._threads = threads
        self._teams = teams
        self._thread_limit = thread_limit
        self._workspace_domain = workspace_domain
        self._digest_channel_id = digest_channel_id
        self._process_note_url = process_note_url
        self._clock = clock or (lambda: datetime.now(UTC))

    def steps(self) -> List[SagaStep[SubmissionContext]]:
        return [
            SagaStep("resolve_reporter", self._resolve_reporter),
            SagaStep("fetch_thread", self._fetch_thread, when=_has_thread_reference),
            SagaStep("create_record", self._create_record, critical=True),
            SagaStep(
                "append_thread_context",
                self._append_thread_context,
                when=lambda context: bool(context.thread_messages),
            ),
            SagaStep("publish_confirmation", self._publish_confirmation),
            SagaStep(
                "ephemeral_ack",
                self._send_ephemeral_ack,
                when=lambda context: context.destination.is_channel_thread,
            ),
            SagaStep("backfill_link", self._backfill_link, when=lambda context: context.confirmation is not None),
            SagaStep(
                "notify_digest_channel",
                self._notify_digest_channel,
                when=lambda _context: self._digest_channel_id is not None,
            ),
        ]

    def run(self, context: SubmissionContext) -> SubmissionResult:
        log = structlog.get_logger().bind(user_id=context.form.created_by, trigger=context.trigger.source.value)
        log.info("submission_started", destination=context.destination.channel)

        report = run_saga(self.steps(), context)
        if not report.succeeded:
            self._notify_failure(context, report)

        log.info(
            "submission_completed",
            succeeded=report.succeeded,
            page_id=context.record.id if context.record else None,
            steps=report.as_dict(),
        )
        return SubmissionResult(report=report, context=context)

    def _resolve_reporter(self, context: SubmissionContext) -> None:
        log = structlog.get_logger()
        user = self._slack.user_info(context.form.created_by)
        profile = user.get("profile") or {}
        name = user.get("real_name") or profile.get("real_name") or user.get("name") or UNKNOWN_REPORTER
        context.form = context.form.model_copy(update={"created_by_name": name})

        lookup = self._identity.resolve(email=profile.get("email"), name=name)
        context.reporter_lookup = lookup
        if lookup.found:
            context.form = context.form.model_copy(update={"reporter_notion_id": lookup.user_id})
            log.info("reporter_resolved", strategy=lookup.strategy)
        else:
            log.warning("reporter_not_resolved", status=lookup.status.value)

    def _fetch_thread(self, context: SubmissionContext) -> None:
        trigger = context.trigger
        result = self._threads.fetch(trigger.source_channel_id, trigger.thread_ts, self._thread_limit)
        if result is None:
            raise ThreadContextUnavailable("thread context unavailable")
        context.thread = result

    def _create_record(self, context: SubmissionContext) -> None:
        form = context.form
        context.record = self._store.create_page(
            properties=build_incident_properties(form),
            children=build_incident_page_blocks(
                description=form.description,
                why_it_matters=form.why_it_matters,
            ),
        )
        structlog.get_logger().info("record_created", page_id=context.record.id, url=context.record.url)

    def _append_thread_context(self, context: SubmissionContext) -> None:
        messages = context.thread_messages
        self._store.append_blocks(context.record.id, build_thread_context_blocks(messages))
        structlog.get_logger().info("thread_context_appended", page_id=context.record.id, message_count=len(messages))

    def _publish_confirmation(self, context: SubmissionContext) -> None:
        destination = context.destination
        payload = build_confirmation_message(
            form=context.form,
            page_url=context.record.url,
            page_id=context.record.id,
            process_note_url=self._process_note_url,
        )
        response = self._slack.post_message(
            channel=destination.channel,
            text=payload["text"],
            blocks=payload["blocks"],
            thread_ts=destination.thread_ts,
        )

        ts = response.get("ts")
        channel = response.get("channel") or destination.channel
        log = structlog.get_logger().bind(channel=channel)
        if not ts:
            log.warning("confirmation_missing_identifiers", response_keys=list(response.keys()))
            raise ConfirmationUnlinkable("confirmation posted without a message ts")
        context.confirmation = PostedMessage(channel=channel, ts=ts, thread_ts=destination.thread_ts)
        log.info("confirmation_posted", ts=ts, threaded=destination.is_channel_thread)

    def _send_ephemeral_ack(self, context: SubmissionContext) -> None:
        destination = context.destination
        payload = build_ephemeral_ack(form=context.form, page_url=context.record.url)
        self._slack.post_ephemeral(
            channel=destination.channel,
            user=context.form.created_by,
            text=payload["text"],
            blocks=payload["blocks"],
            thread_ts=destination.thread_ts,
        )

    def _backfill_link(self, context: SubmissionContext) -> None:
        message = context.confirmation
        context.confirmation_url = build_slack_message_url(
            message.channel,
            message.ts,
            workspace_domain=self._workspace_domain,
            thread_ts=message.thread_ts,
        )
        backfill_slack_link(
            self._store,
            page_id=context.record.id,
            message=message,
            message_url=context.confirmation_url,
            synced_at=self._clock(),
        )

    def _notify_digest_channel(self, context: SubmissionContext) -> None:
        # A DM confirmation link only opens for the reporter.
        thread_url = context.confirmation_url if context.destination.is_channel_thread else None
        payload = build_digest_announcement(
            form=context.form,
            page_url=context.record.url,
            team_names=self._teams.team_names(context.form.team_ids),
            slack_thread_url=thread_url,
        )
        self._slack.post_message(channel=self._digest_channel_id, text=payload["text"], blocks=payload["blocks"])

    def _notify_failure(self, context: SubmissionContext, report: SagaReport) -> None:
        outcome = report.outcome(report.aborted_at) if report.aborted_at else None
        error = outcome.error if outcome and outcome.error else "unknown error"
        try:
            self._slack.post_message(channel=context.form.created_by, text=build_error_text(error))
        except Exception as exc:
            structlog.get_logger().error("failure_notification_failed", error=describe_error(exc))
