"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from debt_ledger.config import settings

logger = logging.getLogger("debt_ledger.events")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_entry_created(entry_id: str, reference_code: str, shape: str, principal_cents: int) -> None:
    """Log a newly created ledger entry"""
    logger.info(
        "Entry created",
        extra={
            "entry_id": entry_id,
            "reference_code": reference_code,
            "step": "entry_created",
            "shape": shape,
            "principal_cents": principal_cents,
        },
    )


def log_payment_recorded(
    payment_id: str,
    entry_id: str,
    applied_cents: int,
    change_cents: int,
    remaining_cents: int,
    status: str,
) -> None:
    """Log the balance effect of a payment"""
    logger.info(
        "Payment recorded",
        extra={
            "payment_id": payment_id,
            "entry_id": entry_id,
            "step": "payment_recorded",
            "applied_cents": applied_cents,
            "change_cents": change_cents,
            "remaining_cents": remaining_cents,
            "entry_status": status,
        },
    )


def log_term_skipped(term_id: str, entry_id: str, penalty_cents: int, remaining_cents: int) -> None:
    """Log a skipped installment term and its penalty"""
    logger.info(
        "Term skipped",
        extra={
            "term_id": term_id,
            "entry_id": entry_id,
            "step": "term_skipped",
            "penalty_cents": penalty_cents,
            "remaining_cents": remaining_cents,
        },
    )


def log_sweep_completed(sweep: str, examined: int, changed: int) -> None:
    """Log the outcome of a reconciliation or delinquency sweep"""
    logger.info(
        "Sweep completed",
        extra={
            "step": "sweep_completed",
            "sweep": sweep,
            "examined": examined,
            "changed": changed,
        },
    )
