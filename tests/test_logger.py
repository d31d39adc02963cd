"""Tests for structured diagnostic events and log deletion."""

import logging

from logger import LOGGER_NAME, delete_log_files, log_event


def test_log_event_message_and_extras(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    log_event("api_call_response", status=200, bytes=42)

    record = caplog.records[-1]
    assert record.getMessage() == "api_call_response | status=200, bytes=42"
    assert record.event_name == "api_call_response"
    assert record.event_details == {"status": 200, "bytes": 42}
    assert record.levelno == logging.INFO


def test_log_event_without_details(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    log_event("fetch_finished")

    assert caplog.records[-1].getMessage() == "fetch_finished"


def test_log_event_level(caplog):
    log_event("fetch_credits_failed", level=logging.WARNING, error="[500] down")

    assert caplog.records[-1].levelno == logging.WARNING


def test_delete_log_files(tmp_path):
    (tmp_path / "2026-10-17.log").write_text("old")
    (tmp_path / "2026-10-18.log").write_text("new")
    (tmp_path / "settings.json").write_text("{}")

    removed = delete_log_files(tmp_path)

    assert removed == 2
    assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]
