"""Logging configuration."""

from __future__ import annotations

import io
import json
import logging

import pytest

from sshexec.utils.logging import get_logger, setup_logging


@pytest.fixture
def log_stream():
    stream = io.StringIO()
    yield stream
    setup_logging()


def test_json_renderer_emits_event_and_context(log_stream):
    setup_logging(level="INFO", json=True, stream=log_stream)
    get_logger("sshexec.test").info("ssh.connected", target="alice@h:22")
    record = json.loads(log_stream.getvalue().strip().splitlines()[-1])
    assert record["event"] == "ssh.connected"
    assert record["target"] == "alice@h:22"
    assert record["level"] == "info"
    assert record["logger"] == "sshexec.test"


def test_level_filters_lower_events(log_stream):
    setup_logging(level="WARNING", json=True, stream=log_stream)
    log = get_logger("sshexec.test")
    log.info("ssh.quiet")
    log.warning("ssh.loud")
    assert "ssh.quiet" not in log_stream.getvalue()
    assert "ssh.loud" in log_stream.getvalue()


def test_unknown_level_falls_back_to_info(log_stream):
    setup_logging(level="chatty", stream=log_stream)
    assert logging.getLogger().level == logging.INFO


def test_paramiko_is_kept_at_warning(log_stream):
    setup_logging(level="DEBUG", stream=log_stream)
    assert logging.getLogger("paramiko").level == logging.WARNING
