"""Tests for the step runner behind incident submissions."""

from structlog.testing import capture_logs

from incident_bot.errors import ExternalCallTimeout
from incident_bot.saga import (
    KIND_ERROR,
    KIND_TIMEOUT,
    STATUS_FAILED,
    STATUS_OK,
    STATUS_SKIPPED,
    SagaStep,
    run_saga,
)


def _append(name):
    def action(context):
        context.append(name)

    return action


def _fail(exc):
    def action(_context):
        raise exc

    return action


def test_steps_run_in_order():
    context = []

    report = run_saga([SagaStep("a", _append("a")), SagaStep("b", _append("b"))], context)

    assert context == ["a", "b"]
    assert report.succeeded
    assert report.as_dict() == {"a": STATUS_OK, "b": STATUS_OK}


def test_best_effort_failure_continues():
    context = []

    with capture_logs() as logs:
        report = run_saga(
            [
                SagaStep("a", _fail(RuntimeError("boom"))),
                SagaStep("b", _append("b")),
            ],
            context,
        )

    assert context == ["b"]
    assert report.succeeded
    assert report.failed_steps == ["a"]
    assert report.outcome("a").kind == KIND_ERROR
    assert report.outcome("a").error == "boom"
    assert logs[0]["event"] == "saga_step_failed"
    assert logs[0]["log_level"] == "warning"


def test_critical_failure_stops_run():
    context = []

    report = run_saga(
        [
            SagaStep("create", _fail(ExternalCallTimeout("notion", "pages.create")), critical=True),
            SagaStep("after", _append("after")),
        ],
        context,
    )

    assert context == []
    assert not report.succeeded
    assert report.aborted_at == "create"
    assert report.outcome("create").kind == KIND_TIMEOUT
    assert report.outcome("create").status == STATUS_FAILED
    assert report.outcome("after") is None


def test_guarded_steps_are_skipped():
    context = []

    report = run_saga([SagaStep("a", _append("a"), when=lambda ctx: False)], context)

    assert context == []
    assert report.outcome("a").status == STATUS_SKIPPED
    assert report.succeeded
