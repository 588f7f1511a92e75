"""Tests for cron endpoint authorisation."""

import pytest

from incident_bot.security import extract_bearer_token, is_authorized_cron_request


def test_valid_bearer_token_is_accepted():
    assert is_authorized_cron_request("Bearer s3cret", "s3cret") is True


@pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer ", "Basic s3cret", "Bearer wrong", "bearer s3cret"])
def test_invalid_headers_are_rejected(header):
    assert is_authorized_cron_request(header, "s3cret") is False


def test_requests_are_rejected_without_configured_secret():
    assert is_authorized_cron_request("Bearer anything", None) is False
    assert is_authorized_cron_request("Bearer ", "") is False


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer  abc ") == "abc"
    assert extract_bearer_token("Token abc") is None
