"""Tests for the Slack message builders."""

from incident_bot.incidents.messages import (
    build_confirmation_message,
    build_digest_announcement,
    build_ephemeral_ack,
    build_error_text,
)
from incident_bot.incidents.models import Area, IncidentFormData, Severity


def _form(**overrides):
    values = {
        "title": "Payment gateway down",
        "description": "Checkout returns 502",
        "severity": Severity.ASAP,
        "area": Area.CLIENT,
        "created_by": "U1",
        "slack_channel_id": "C1",
    }
    values.update(overrides)
    return IncidentFormData(**values)


def test_confirmation_message_layout():
    message = build_confirmation_message(
        form=_form(),
        page_url="https://notion.so/abcd",
        page_id="1234abcd-5678-90ef",
    )

    assert message["text"] == "New incident reported: Payment gateway down"
    blocks = message["blocks"]
    assert blocks[0]["text"]["text"] == "🚨 New Incident Reported"
    fields = [field["text"] for field in blocks[1]["fields"]]
    assert "*Reported by:*\n<@U1>" in fields
    assert "*Severity:*\n⚡ ASAP" in fields
    assert blocks[-1]["elements"][0]["text"] == "📝 <https://notion.so/abcd|View in Notion> • ID: 1234abcd"


def test_confirmation_message_truncates_description_and_adds_process_note():
    message = build_confirmation_message(
        form=_form(description="x" * 3500),
        page_url="https://notion.so/abcd",
        page_id="abcd",
        process_note_url="https://wiki.example.com/incidents",
    )

    description = message["blocks"][2]["text"]["text"]
    assert description.endswith("...")
    assert len(description) < 3000
    assert "https://wiki.example.com/incidents" in message["blocks"][-1]["elements"][0]["text"]


def test_ephemeral_ack_links_page():
    message = build_ephemeral_ack(form=_form(), page_url="https://notion.so/abcd")

    assert "<https://notion.so/abcd|View in Notion>" in message["blocks"][0]["text"]["text"]


def test_digest_announcement_lists_teams_and_thread():
    message = build_digest_announcement(
        form=_form(severity=Severity.LOW, description="y" * 300),
        page_url="https://notion.so/abcd",
        team_names=["Platform", "Billing"],
        slack_thread_url="https://app.slack.com/archives/C1/p1",
    )

    summary = message["blocks"][0]["text"]["text"]
    assert "🟢 Low | Team: Platform, Billing | Reporter: <@U1>" in summary
    assert message["blocks"][1]["text"]["text"] == "*Description:*\n" + "y" * 200 + "..."
    assert message["blocks"][2]["elements"][0]["text"] == (
        "📝 <https://notion.so/abcd|View in Notion> • 💬 <https://app.slack.com/archives/C1/p1|Slack Thread>"
    )


def test_digest_announcement_without_teams():
    message = build_digest_announcement(form=_form(), page_url="https://notion.so/abcd")

    assert "Team: No team assigned" in message["blocks"][0]["text"]["text"]


def test_error_text():
    assert build_error_text("timed out") == "Sorry, there was an error creating the incident: timed out"
