from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

# Level used for verbose capture traces, below DEBUG
TRACE = 5

_DEFAULT_LEVEL = "WARNING"

_file_lock = threading.RLock()
_log_dir: Path | None = None


def level_from_name(raw: str | int | None) -> int:
    """Translate a level name (TRACE|DEBUG|INFO|WARNING|ERROR) into its numeric value."""
    if isinstance(raw, int):
        return raw
    name = (raw or _DEFAULT_LEVEL).upper()
    if name == "TRACE":
        return TRACE
    return getattr(logging, name, logging.WARNING)


def _safe_name(test_name: str) -> str:
    return test_name.replace(os.sep, "_").replace("/", "_").replace(" ", "_").replace(":", "_")


def _copy_event_to_message(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any]:
    if "event" in event_dict and "message" not in event_dict:
        event_dict["message"] = event_dict["event"]
    return event_dict


def _drop_none_values(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any]:
    return {k: v for k, v in event_dict.items() if v is not None}


def _file_sink_processor(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """
    Duplicate log records into files when a log directory is configured:
    - <log_dir>/framework.log      - all records
    - <log_dir>/test_<name>.log    - records bound to the current test
    """
    log_dir = _log_dir
    if log_dir is None:
        return event_dict

    line = json.dumps(event_dict, ensure_ascii=False, default=str)

    test_name = event_dict.get("test")
    test_path = None
    if isinstance(test_name, str) and test_name:
        test_path = log_dir / f"test_{_safe_name(test_name)}.log"

    try:
        with _file_lock:
            log_dir.mkdir(parents=True, exist_ok=True)
            with (log_dir / "framework.log").open("a", encoding="utf-8") as f:
                f.write(line + "\n")
            if test_path is not None:
                with test_path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
    except OSError:
        # Never break a test run because of log write issues
        pass

    return event_dict


def current_test_log_path(test_name: str | None = None) -> Path | None:
    """
    Return the log file path for the given test, or the common framework log
    when no test name is given. Returns None when file logging is disabled.
    """
    if _log_dir is None:
        return None
    if not test_name:
        return _log_dir / "framework.log"
    return _log_dir / f"test_{_safe_name(str(test_name))}.log"


def bind_context(*, test_name: str | None = None) -> None:
    """Bind the current test name into the logging context."""
    bind_contextvars(test=test_name)


_CONFIGURED = False


def setup_logging(
    level: str | int | None = None,
    log_dir: str | Path | None = None,
    *,
    force: bool = False,
) -> None:
    """
    Centralized setup of structured logging with JSON output.

    Includes:
    - Level from the argument, else HOG_LOG_LEVEL, else WARNING (silent capture)
    - ISO 8601 timestamp (key: "timestamp")
    - Test context via contextvars
    - Optional duplication of each record into <log_dir>/framework.log and
      <log_dir>/test_<name>.log
    - JSON lines printed to stdout

    Subsequent calls are no-ops unless force=True.
    """
    global _CONFIGURED, _log_dir
    if _CONFIGURED and not force:
        return

    numeric = level_from_name(level if level is not None else os.getenv("HOG_LOG_LEVEL"))
    _log_dir = Path(log_dir) if log_dir else None

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.CallsiteParameterAdder(
                [structlog.processors.CallsiteParameter.MODULE]
            ),
            _copy_event_to_message,
            _drop_none_values,
            _file_sink_processor,
            structlog.processors.JSONRenderer(default=str),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        cache_logger_on_first_use=False,
    )

    logging.getLogger("playwright_hog").setLevel(numeric)

    _CONFIGURED = True


def get_logger(name: str | None = None) -> Any:
    """
    Get a structlog logger instance.

    Ensures logging is configured even in plain unit-test runs without the pytest plugin.
    """
    if not _CONFIGURED:
        setup_logging()
    return structlog.get_logger(name or __name__)


def get_trace_logger(name: str | None = None, *, enabled: bool = False) -> Any:
    """
    Logger for capture traces.

    When enabled, records at DEBUG and above pass regardless of the configured
    level, so a single session can turn its traces on without reconfiguring
    logging for the whole run. Processors and output stay the configured ones.
    """
    if not enabled:
        return get_logger(name)
    if not _CONFIGURED:
        setup_logging()
    return structlog.wrap_logger(
        None,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        logger_factory_args=(name or __name__,),
    )


__all__ = [
    "TRACE",
    "setup_logging",
    "bind_context",
    "current_test_log_path",
    "get_logger",
    "get_trace_logger",
    "level_from_name",
    "clear_contextvars",
]
