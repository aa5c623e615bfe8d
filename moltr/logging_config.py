"""
Logging configuration for Moltr API.

Provides structured JSON logging for audit trails and debugging.
API keys, hashes, memos and signatures are never passed to a logger.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from .security import sanitize_for_logging

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    Records registrations, authentication failures, receipt access and
    object uploads.
    """

    def __init__(self, name: str = "moltr.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        if not self._logger.isEnabledFor(level):
            return

        extra = sanitize_for_logging({
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        })

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def tag_registered(self, tag_id: str, username: str) -> None:
        """Log a new Tag. The issued key is never passed here."""
        self._log(
            logging.INFO,
            "TAG_REGISTERED",
            tag_id=tag_id,
            username=username,
            message=f"Tag registered: {username}"
        )

    def wallet_updated(self, tag_id: str) -> None:
        self._log(
            logging.INFO,
            "WALLET_UPDATED",
            tag_id=tag_id,
            message="Wallet address updated"
        )

    def authentication_failed(self, client_id: str, reason: str) -> None:
        """Log a rejected API key."""
        self._log(
            logging.WARNING,
            "AUTHENTICATION_FAILED",
            client_id=client_id,
            reason=reason,
            message=f"Authentication failed: {reason}"
        )

    def receipt_created(
        self,
        receipt_id: str,
        created_by: str,
        from_tag_id: str,
        to_tag_id: str
    ) -> None:
        self._log(
            logging.INFO,
            "RECEIPT_CREATED",
            receipt_id=receipt_id,
            created_by=created_by,
            from_tag_id=from_tag_id,
            to_tag_id=to_tag_id,
            message=f"Receipt {receipt_id} created"
        )

    def receipt_access_denied(self, tag_id: str, action: str) -> None:
        """Log a non-party attempt on a receipt. No receipt details are recorded."""
        self._log(
            logging.WARNING,
            "RECEIPT_ACCESS_DENIED",
            tag_id=tag_id,
            action=action,
            message=f"Receipt {action} denied"
        )

    def object_uploaded(self, key: str, size: int, content_type: str) -> None:
        self._log(
            logging.INFO,
            "OBJECT_UPLOADED",
            key=key,
            size=size,
            content_type=content_type,
            message=f"Object uploaded: {key}"
        )

    def object_upload_failed(self, key: str, reason: str) -> None:
        self._log(
            logging.ERROR,
            "OBJECT_UPLOAD_FAILED",
            key=key,
            reason=reason,
            message=f"Object upload failed: {key}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )

    def rate_limit_exceeded(
        self,
        client_id: str,
        endpoint: str
    ) -> None:
        """Log rate limit exceeded."""
        self._log(
            logging.WARNING,
            "RATE_LIMIT_EXCEEDED",
            client_id=client_id,
            endpoint=endpoint,
            message=f"Rate limit exceeded for {client_id} on {endpoint}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()
