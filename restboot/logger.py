"""Unified logger providing technical instrumentation and activity logging."""

from __future__ import annotations

import json
import logging
import os
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Tuple

import logfire

from restboot.settings import get_app_settings


_activity_logger: Optional[logging.Logger] = None
_activity_log_path: Optional[Path] = None
_activity_logger_lock = Lock()
_logfire_config_state: Optional[Tuple[bool, bool]] = None
_logger_internal = logging.getLogger(__name__)


def refresh_logfire_configuration(force: bool = False) -> None:
    """
    Reconfigure the global Logfire client based on current settings.

    Sending is enabled by RESTBOOT_LOGFIRE and only happens when a
    LOGFIRE_TOKEN is present in the environment.

    Args:
        force: When True, always reapply configuration even if nothing changed.
    """
    global _logfire_config_state

    try:
        enabled = get_app_settings().logfire
    except Exception as exc:  # pragma: no cover - invalid env falls back to disabled
        _logger_internal.error("Failed to read logfire setting, defaulting to disabled: %s", exc)
        enabled = False

    desired_state = (enabled, bool(os.environ.get("LOGFIRE_TOKEN")))

    if not force and _logfire_config_state == desired_state:
        return

    send_option: str | bool = "if-token-present" if enabled else False

    logfire.configure(
        send_to_logfire=send_option,
        scrubbing=False,
    )

    _logfire_config_state = desired_state


# Initialize configuration eagerly so early logging honors current settings.
refresh_logfire_configuration(force=True)


def _ensure_activity_logger() -> Optional[logging.Logger]:
    """Create or return the process-wide activity logger, or None when disabled."""

    global _activity_logger
    global _activity_log_path

    desired_path = get_app_settings().activity_log
    if desired_path is None:
        return None

    if _activity_logger and _activity_log_path == desired_path:
        return _activity_logger

    with _activity_logger_lock:
        if _activity_logger and _activity_log_path == desired_path:
            return _activity_logger

        # Tear down existing logger if the target path changes between runs
        if _activity_logger and _activity_log_path != desired_path:
            for handler in list(_activity_logger.handlers):
                _activity_logger.removeHandler(handler)
                handler.close()
            _activity_logger = None

        desired_path.parent.mkdir(parents=True, exist_ok=True)

        handler = RotatingFileHandler(desired_path, maxBytes=1_048_576, backupCount=5)
        handler.setFormatter(logging.Formatter("%(message)s"))

        logger = logging.getLogger("restboot.activity")
        logger.setLevel(logging.INFO)
        logger.propagate = False
        logger.addHandler(handler)

        _activity_logger = logger
        _activity_log_path = desired_path
        return logger


class UnifiedLogger:
    """Unified logger providing instrumentation and persistent activity logging."""

    def __init__(self, tag: str):
        """
        Initialize unified logger for a module or component.

        Args:
            tag: Module or component identifier
        """
        self.tag = tag

    @property
    def _logfire(self):
        return logfire

    # Technical Instrumentation Methods

    def info(self, message: str, **extra: Any) -> None:
        """Technical info logging."""
        self._logfire.info(message, tag=self.tag, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        """Technical warning logging."""
        self._logfire.warn(message, tag=self.tag, **extra)

    def error(self, message: str, **extra: Any) -> None:
        """Technical error logging."""
        self._logfire.error(message, tag=self.tag, **extra)

    def debug(self, message: str, **extra: Any) -> None:
        """Technical debug logging."""
        self._logfire.debug(message, tag=self.tag, **extra)

    @contextmanager
    def span(self, operation: str, **span_data: Any):
        """
        Manual instrumentation span for critical code paths.

        Usage:
            with logger.span("bind", host=host):
                ...
        """
        with self._logfire.span(f"{self.tag}:{operation}", **span_data):
            yield

    @asynccontextmanager
    async def async_span(self, operation: str, **span_data: Any):
        """Async variant of span() for coroutines."""
        with self._logfire.span(f"{self.tag}:{operation}", **span_data):
            yield

    # Activity Logging

    def activity(
        self,
        message: str,
        *,
        level: str = "info",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record an operational activity entry and mirror it to Logfire.

        Entries are appended as JSON lines to the file named by
        RESTBOOT_ACTIVITY_LOG; without it only the Logfire record is emitted.

        Args:
            message: Human-readable description of the activity.
            level: Activity level; used for Logfire mirroring and stored payload.
            metadata: Optional structured payload persisted alongside the message.
        """
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "level": level,
            "tag": self.tag,
            "message": message,
        }
        if metadata:
            payload["metadata"] = metadata

        activity_logger = _ensure_activity_logger()
        if activity_logger is not None:
            activity_logger.info(json.dumps(payload, ensure_ascii=False, default=str))

        log_method = getattr(self._logfire, level, None)
        if callable(log_method):
            log_method(message, tag=self.tag, metadata=metadata)
        else:
            self._logfire.info(message, tag=self.tag, metadata=metadata, level=level)

    # Instrumentation Setup

    def setup_instrumentation(self, app=None) -> None:
        """
        Set up automatic instrumentation for the application.

        Instruments a FastAPI app when given and routes stdlib logging
        (uvicorn's loggers among others) into Logfire.

        Args:
            app: Optional FastAPI app instance for request instrumentation
        """
        try:
            if app:
                logfire.instrument_fastapi(app)

            logging.basicConfig(
                handlers=[logfire.LogfireLoggingHandler()],
                level=get_app_settings().log_level,
            )

        except ImportError as e:
            # Expected failure when optional dependencies aren't available
            self.warning(f"Optional instrumentation dependency unavailable: {e}")
        except Exception as e:
            self.error(f"Failed to set up instrumentation: {e}")
            raise
