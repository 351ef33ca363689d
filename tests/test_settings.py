"""Tests for worker settings, message decoding and logging setup"""

import io
import json
import logging

import pytest
import structlog
from pydantic import ValidationError

from evalkernel.__main__ import parse_args
from evalkernel.domain.errors import MalformedMessage
from evalkernel.domain.models.kernel_state import KernelConfig, KernelMessage, UNDEFINED
from evalkernel.infrastructure.config.settings import WorkerSettings
from evalkernel.infrastructure.observability.logging import setup_logging


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DEBUG", "1")
    monkeypatch.setenv("KERNEL_AWAIT_EXECUTION", "true")
    monkeypatch.setenv("KERNEL_PORT", "9001")
    monkeypatch.delenv("KERNEL_LOG_LEVEL", raising=False)

    settings = WorkerSettings.from_env()

    assert settings.debug
    assert settings.log_level == "DEBUG"
    assert settings.port == 9001
    assert settings.context_config().await_execution


def test_settings_defaults(monkeypatch):
    for name in ("DEBUG", "KERNEL_LOG_LEVEL", "KERNEL_AWAIT_EXECUTION", "KERNEL_PORT"):
        monkeypatch.delenv(name, raising=False)

    settings = WorkerSettings.from_env()

    assert not settings.debug
    assert settings.log_level == "INFO"
    assert not settings.context_config().await_execution


def test_kernel_config_validates_assignment():
    config = KernelConfig()

    with pytest.raises(ValidationError):
        config.await_execution = "not a bool"


def test_kernel_message_from_wire():
    message = KernelMessage.from_wire(["reply", {"x": 1}, "ctx1", 7])

    assert message.action == "reply"
    assert message.reply == {"x": 1}
    assert message.context_id == "ctx1"
    assert message.request_id == 7


def test_kernel_message_rejects_bad_context_id():
    with pytest.raises(MalformedMessage):
        KernelMessage.from_wire(["run", "1", {"not": "an id"}])


def test_undefined_is_a_falsy_singleton():
    assert not UNDEFINED
    assert repr(UNDEFINED) == "undefined"
    assert type(UNDEFINED)() is UNDEFINED


def test_parse_args_defaults():
    args = parse_args([])

    assert args.transport == "stdio"
    assert args.port is None


def test_setup_logging_writes_json_to_stream():
    stream = io.StringIO()
    setup_logging(log_level="INFO", log_format="json", stream=stream)

    structlog.get_logger("evalkernel.test").info("hello", answer=42)

    record = json.loads(stream.getvalue().splitlines()[-1])
    assert record["event"] == "hello"
    assert record["answer"] == 42
    assert record["service"] == "evalkernel"

    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.getLogger().handlers.clear()
