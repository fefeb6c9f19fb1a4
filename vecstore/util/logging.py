"""
Structured logging for vector store operations.
Content payloads are redacted; only identifiers and counts are logged.
"""

import logging
from typing import Any, Dict, List

SENSITIVE_FIELDS = ['content', 'text', 'query', 'embedding', 'secret', 'password']


class StructuredLogger:
    """Structured logger for index, provider and snapshot operations."""

    def __init__(self, name: str = "vecstore"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status == "failed":
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log an index operation against a single record or a batch."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(sanitize_payload(details))

        self.log_operation(f"vector.{operation}", status, log_details)

    def log_provider_call(self, provider: str, status: str = "success", details: Dict[str, Any] = None):
        """Log an embedding provider call outcome."""
        log_details = {"provider": provider}
        if details:
            log_details.update(sanitize_payload(details))

        self.log_operation("provider.embed", status, log_details)

    def log_snapshot_operation(self, operation: str, path: str, record_count: int, status: str = "success", details: Dict[str, Any] = None):
        """Log snapshot save/load."""
        log_details = {"path": path, "record_count": record_count}
        if details:
            log_details.update(details)

        self.log_operation(f"snapshot.{operation}", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        if len(payload) > 10:
            return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload[:10]] + ["..."]
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload


# Global logger instance
logger = StructuredLogger()
