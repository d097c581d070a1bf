import os
import signal
import sys
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from loguru import logger

from config.logger import install_asyncio_crash_handler, install_crash_handlers


@pytest.fixture
def critical_logs():
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="CRITICAL")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def crash_hooks(monkeypatch):
    # monkeypatch restores the interpreter's hooks afterwards
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    install_crash_handlers()


def test_uncaught_exception_is_logged_and_exits(crash_hooks, critical_logs):
    error = RuntimeError("worker state corrupted")

    with pytest.raises(SystemExit) as exc_info:
        sys.excepthook(RuntimeError, error, None)

    assert exc_info.value.code == 1
    assert len(critical_logs) == 1
    assert critical_logs[0]["level"].name == "CRITICAL"
    assert critical_logs[0]["exception"].value is error


def test_keyboard_interrupt_uses_default_hook(crash_hooks, critical_logs, monkeypatch):
    default_hook = MagicMock()
    monkeypatch.setattr(sys, "__excepthook__", default_hook)
    interrupt = KeyboardInterrupt()

    sys.excepthook(KeyboardInterrupt, interrupt, None)

    default_hook.assert_called_once_with(KeyboardInterrupt, interrupt, None)
    assert critical_logs == []


def test_thread_exception_terminates_process(crash_hooks, critical_logs, monkeypatch):
    exit_mock = MagicMock()
    monkeypatch.setattr(os, "_exit", exit_mock)
    error = ValueError("bad chunk")

    threading.excepthook(SimpleNamespace(
        exc_type=ValueError,
        exc_value=error,
        exc_traceback=None,
        thread=SimpleNamespace(name="ingest-worker"),
    ))

    exit_mock.assert_called_once_with(1)
    assert "ingest-worker" in critical_logs[0]["message"]


def test_asyncio_error_requests_shutdown(critical_logs, monkeypatch):
    kill = MagicMock()
    monkeypatch.setattr(os, "kill", kill)
    loop = MagicMock()

    install_asyncio_crash_handler(loop)
    handler = loop.set_exception_handler.call_args.args[0]
    handler(loop, {"message": "Task exception was never retrieved", "exception": RuntimeError("lost task")})

    kill.assert_called_once_with(os.getpid(), signal.SIGTERM)
    assert critical_logs[0]["message"].startswith("Task exception was never retrieved")
