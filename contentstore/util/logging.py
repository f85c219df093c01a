"""
Structured logging for content store operations.
Query, mutation, notification and reset events share one log_operation core.
"""

import logging
from typing import Any, Dict, List, Optional

# Fields whose values never reach the log verbatim
SENSITIVE_FIELDS = ['password', 'secret', 'token', 'auth', 'credentials']


class StructuredLogger:
    """Structured logger for resource operations."""

    def __init__(self, name: str = "contentstore"):
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

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None,
                      level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_query(self, address: str, projection: Optional[List[str]] = None,
                  selection: Optional[str] = None, selection_args: Optional[List[Any]] = None,
                  sort_order: Optional[str] = None):
        """Log a read request. Emitted at debug level only."""
        if not self.logger.isEnabledFor(logging.DEBUG):
            # avoid building the details dict if nobody reads it
            return
        details = {
            "address": address,
            "projection": projection,
            "selection": selection,
            "args": sanitize_payload(selection_args),
            "sort_order": sort_order,
        }
        self.log_operation("query", "requested", details, level=logging.DEBUG)

    def log_mutation(self, operation: str, address: str, values: Dict[str, Any] = None,
                     affected: Optional[int] = None, status: str = "success"):
        """Log an insert, update or delete."""
        details: Dict[str, Any] = {"address": address}
        if values is not None:
            details["values"] = sanitize_payload(values)
        if affected is not None:
            details["affected"] = affected

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"mutation.{operation}", status, details, level=level)

    def log_notification(self, address: str, suppressed: bool):
        """Log a change notification decision."""
        status = "suppressed" if suppressed else "published"
        self.log_operation("notify", status, {"address": address}, level=logging.DEBUG)

    def log_reset(self, db_path: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a whole-store reset."""
        log_details = {"db_path": db_path}
        if details:
            log_details.update(details)

        level = logging.WARNING if status == "success" else logging.ERROR
        self.log_operation("store.reset", status, log_details, level=level)

    def log_schema_validation_error(self, operation: str, errors: List[Any], source_record: Dict[str, Any] = None):
        """Log schema validation errors with sanitized details."""
        sanitized_errors = []
        for error in errors:
            if isinstance(error, dict):
                sanitized_error = error.copy()
                # The offending input may hold payload data
                if 'input' in sanitized_error:
                    sanitized_error['input'] = "[REDACTED]"
                sanitized_error.pop('ctx', None)
                sanitized_error.pop('url', None)
                sanitized_errors.append(sanitized_error)
            else:
                sanitized_errors.append(str(error)[:100])

        log_details = {
            "operation": operation,
            "errors": sanitized_errors,
            "error_count": len(sanitized_errors)
        }

        if source_record:
            # Only log identifiers
            if "image_id" in source_record:
                log_details["target_identifier"] = source_record["image_id"]

        self.log_operation("schema_validation.error", "rejected", log_details, level=logging.WARNING)

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

    def exception(self, message: str) -> None:
        """Log an error message with the active traceback."""
        self.logger.exception(message)


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
    elif isinstance(payload, (list, tuple)):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    elif isinstance(payload, bytes):
        return f"<{len(payload)} bytes>"
    else:
        return payload


def set_debug(enabled: bool) -> None:
    """Switch the shared logger between INFO and DEBUG."""
    logger.logger.setLevel(logging.DEBUG if enabled else logging.INFO)


# Global logger instance
logger = StructuredLogger()
