from __future__ import annotations

import logging
import logging.handlers
import socket
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol, Union

import structlog

from promptprobe.inference.schema import AnalysisResult

__all__: list[str] = [
    "Alert",
    "AlertEmitter",
    "NotificationSink",
    "NullSink",
    "SyslogSink",
]

_SYSLOG_LOGGER_NAME = "promptprobe.alerts.syslog"


@dataclass(frozen=True)
class Alert:
    """A raised alert for one analysed file."""

    file_path: str
    confidence: float
    threshold: float
    raised_at: datetime = field(default_factory=datetime.now)

    @property
    def message(self) -> str:
        return f"AI content detected: {self.file_path} (confidence: {self.confidence})"


class NotificationSink(Protocol):
    """External notification hook called once per alert."""

    def notify(self, alert: Alert) -> None: ...


class NullSink:
    """Sink that discards alerts."""

    def notify(self, alert: Alert) -> None:
        return None


class SyslogSink:
    """Forward alerts to the system log.

    The handler is created lazily on the first alert so that a missing
    ``/dev/log`` only surfaces when an alert is actually raised.
    """

    def __init__(
        self,
        address: Union[str, tuple[str, int]] = "/dev/log",
        *,
        facility: int = logging.handlers.SysLogHandler.LOG_USER,
    ) -> None:
        self.address = address
        self.facility = facility
        self._logger: Optional[logging.Logger] = None

    def _get_logger(self) -> logging.Logger:
        if self._logger is None:
            handler = logging.handlers.SysLogHandler(
                address=self.address,
                facility=self.facility,
                socktype=socket.SOCK_DGRAM,
            )
            handler.setFormatter(logging.Formatter("promptprobe: %(message)s"))
            syslog_logger = logging.getLogger(_SYSLOG_LOGGER_NAME)
            syslog_logger.setLevel(logging.WARNING)
            syslog_logger.propagate = False
            syslog_logger.handlers.clear()
            syslog_logger.addHandler(handler)
            self._logger = syslog_logger
        return self._logger

    def notify(self, alert: Alert) -> None:
        self._get_logger().warning(alert.message)


class AlertEmitter:
    """Decide whether a result warrants an alert and emit it.

    The warning log line and the sink call are fire-and-forget; a failing
    sink is logged and never propagates.
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        *,
        logger: Any = None,
    ) -> None:
        self.sink: NotificationSink = sink or NullSink()
        self._log = logger or structlog.get_logger(__name__)

    def maybe_alert(self, result: AnalysisResult, threshold: float) -> Optional[Alert]:
        """
        Raise an alert iff the top candidate's confidence is ``>= threshold``.

        Args:
            result: A single-file analysis result.
            threshold: Inclusive alert threshold.

        Returns:
            The :class:`Alert` that was emitted, or ``None``.
        """
        top = result.top_confidence
        if top is None or top < threshold:
            self._log.debug(
                "alert_not_raised",
                file_path=result.file_path,
                confidence=top,
                threshold=threshold,
            )
            return None

        alert = Alert(
            file_path=result.file_path,
            confidence=top,
            threshold=threshold,
        )
        self._log.warning(
            "high_confidence_content_detected",
            file_path=alert.file_path,
            confidence=alert.confidence,
            threshold=threshold,
        )
        try:
            self.sink.notify(alert)
        except Exception as e:  # noqa: BLE001 – isolate sink failures
            self._log.error(
                "alert_notification_failed",
                file_path=alert.file_path,
                sink=type(self.sink).__name__,
                error=str(e),
            )
        return alert
