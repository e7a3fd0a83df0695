"""
Audit Logger

DESIGN DECISION: Every committed ledger event is logged, once.
This provides:
1. A human-readable trail next to the event log itself
2. Debugging capability when a balance looks wrong
3. Visibility into rejected operations and Conflict retries

The audit logger:
- Hooks into the store's commit listener, so events from rolled-back
  transactions never appear
- Never raises into the ledger (the store shields listeners)
"""

import logging
import sys
from typing import Optional, Sequence

import structlog

from debt_ledger.config import LoggingSettings, get_settings
from debt_ledger.errors import LedgerError
from debt_ledger.models.events import AnyLedgerEvent
from debt_ledger.services.storage import LedgerStorageInterface


def configure_logging(
    settings: Optional[LoggingSettings] = None,
    force: bool = False,
) -> None:
    """
    Configure structlog on top of the standard library logger.

    Runs once at import with the environment's settings. Call again with
    force=True to replace an existing root handler.
    """
    settings = settings or get_settings().logging

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=settings.level,
        force=force,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_logs
        else structlog.dev.ConsoleRenderer()
    )

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
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging for the ledger.

    Attach it to a store and it logs each committed event as
    `ledger_event`. The ledger facade also reports rejected operations and
    Conflict retries through it.
    """

    def __init__(self):
        self._logger = structlog.get_logger("debt_ledger.audit")

    def attach(self, storage: LedgerStorageInterface) -> None:
        storage.add_commit_listener(self.log_committed)

    def log_committed(self, events: Sequence[AnyLedgerEvent]) -> None:
        """Log every event of one committed transaction."""
        for event in events:
            self._logger.info("ledger_event", **event.to_log_dict())

    def log_rejected(self, operation: str, error: LedgerError) -> None:
        """Log an operation the ledger refused. Nothing was changed."""
        self._logger.warning(
            "ledger_operation_rejected",
            operation=operation,
            **error.to_log_dict(),
        )

    def log_conflict_retry(self, operation: str, attempt: int) -> None:
        self._logger.info(
            "ledger_conflict_retry",
            operation=operation,
            attempt=attempt,
        )


configure_logging()
