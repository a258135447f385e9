"""
Audit Logger

DESIGN DECISION: Every change to the expense book is logged.
This provides:
1. Traceability of what was saved, changed and deleted
2. Debugging capability when storage or export fails
3. A record of rejected entries

The audit logger:
- Is async so flows can await it next to storage calls
- Never raises into the caller (a failed log line must not fail a save)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from flowbook.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the standard library at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger("flowbook").setLevel(level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Writes every event as one structured JSON log line.
    """

    def __init__(self, logger_name: str = "flowbook.audit", environment: Optional[str] = None):
        """
        Args:
            logger_name: structlog logger to write to
            environment: Deployment environment stamped on every line
        """
        self._logger = structlog.get_logger(logger_name)
        self._environment = environment

    @property
    def environment(self) -> Optional[str]:
        return self._environment

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the log line could not be written.
        """
        log_dict = event.to_log_dict()
        if self._environment:
            log_dict["environment"] = self._environment

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must not break the main flow
            logging.getLogger(__name__).warning(
                "audit log write failed for %s: %s", event.event_id, e
            )
            return False

        return True

    async def log_validation_failed(
        self,
        messages: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected entry form."""
        await self.log(AuditEventBuilder.validation_failed(
            messages=messages,
            correlation_id=correlation_id,
        ))

    async def log_expense_saved(
        self,
        expense_id: int,
        title: str,
        amount: str,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a newly inserted expense."""
        await self.log(AuditEventBuilder.expense_saved(
            expense_id=expense_id,
            title=title,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        expense_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed insert, update or delete."""
        await self.log(AuditEventBuilder.save_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_query_failed(
        self,
        query: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.query_failed(
            query=query,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_export_generated(
        self,
        export_format: str,
        expense_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.export_generated(
            export_format=export_format,
            expense_count=expense_count,
            correlation_id=correlation_id,
        ))

    async def log_export_failed(
        self,
        export_format: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.export_failed(
            export_format=export_format,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one form submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
