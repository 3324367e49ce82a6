"""Installment term status changes, skip penalties and the delinquency sweep"""

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from debt_ledger.config import settings
from debt_ledger.domain.balances import derive_status
from debt_ledger.domain.exceptions import NotFoundError, ValidationError
from debt_ledger.domain.models import TERMINAL_TERM_STATUSES, TermStatus
from debt_ledger.domain.penalties import skip_penalty
from debt_ledger.infrastructure.database.models import InstallmentTerm
from debt_ledger.infrastructure.database.repositories import EntryRepository, PlanRepository
from debt_ledger.infrastructure.database.session import atomic
from debt_ledger.infrastructure.observability.logging import log_sweep_completed, log_term_skipped
from debt_ledger.infrastructure.observability.metrics import delinquent_terms_counter, record_term_skipped
from debt_ledger.services.entries import check_balance
from debt_ledger.services.locking import entry_locks

logger = logging.getLogger(__name__)

TERMINAL_VALUES = frozenset(status.value for status in TERMINAL_TERM_STATUSES)


class TermService:
    """Operate on individual installment terms"""

    def __init__(self, db: Session):
        self.db = db
        self.entries = EntryRepository(db)
        self.plans = PlanRepository(db)

    def get_term(self, term_id: uuid.UUID) -> InstallmentTerm:
        term = self.plans.get_term(term_id)
        if term is None:
            raise NotFoundError("Term", term_id)
        return term

    def set_term_status(self, term_id: uuid.UUID, new_status: TermStatus) -> InstallmentTerm:
        """
        Assign a term status directly.

        PAID and SKIPPED terms are final. SKIPPED is only reachable through
        skip_term and DELINQUENT only through mark_delinquent.
        """
        try:
            new_status = TermStatus(new_status)
        except ValueError:
            raise ValidationError(f"unknown term status: {new_status}")
        if new_status is TermStatus.SKIPPED:
            raise ValidationError("use the skip operation to skip a term")
        if new_status is TermStatus.DELINQUENT:
            raise ValidationError("terms only become delinquent through the delinquency sweep")

        term = self.get_term(term_id)
        entry_id = term.plan.entry_id

        with entry_locks.hold(entry_id), atomic(self.db):
            self.entries.get(entry_id, for_update=True)
            self.db.refresh(term)
            if term.status in TERMINAL_VALUES:
                raise ValidationError(f"term is already {term.status}")
            term.status = new_status.value
            self.db.flush()
        return term

    def preview_skip_penalty(self, term_id: uuid.UUID) -> int:
        """Penalty skip_term would apply right now; no writes"""
        term = self.get_term(term_id)
        return self._penalty_for(term)

    def skip_term(self, term_id: uuid.UUID) -> InstallmentTerm:
        """
        Skip a term and add its penalty to the entry balance.

        Rejected without any change when the term is already PAID or SKIPPED.
        """
        term = self.get_term(term_id)
        entry_id = term.plan.entry_id

        with entry_locks.hold(entry_id), atomic(self.db):
            entry = self.entries.get(entry_id, for_update=True)
            self.db.refresh(term)
            if entry.completed_at is not None:
                raise ValidationError("cannot skip a term of a completed entry")
            if term.status in TERMINAL_VALUES:
                raise ValidationError(f"cannot skip a term that is already {term.status}")

            penalty = self._penalty_for(term)
            term.status = TermStatus.SKIPPED.value
            term.penalty_cents = (term.penalty_cents or 0) + penalty

            entry.penalty_cents = (entry.penalty_cents or 0) + penalty
            entry.remaining_cents = entry.remaining_cents + penalty
            entry.status = derive_status(entry.remaining_cents, entry.total_due_cents).value
            self.db.flush()
            check_balance(entry)

        record_term_skipped(penalty)
        log_term_skipped(str(term_id), str(entry_id), penalty, entry.remaining_cents)
        return term

    def mark_delinquent(self, as_of: Optional[date] = None) -> int:
        """
        Move UNPAID terms whose due date has passed to DELINQUENT.

        Idempotent; other statuses are left alone. Returns the number of terms moved.
        """
        as_of = as_of or date.today()
        with atomic(self.db):
            moved = self.plans.mark_overdue_delinquent(as_of)

        delinquent_terms_counter.inc(moved)
        log_sweep_completed("delinquent", moved, moved)
        return moved

    def _penalty_for(self, term: InstallmentTerm) -> int:
        # Per-term plan amount, never the remainder-adjusted last term
        return skip_penalty(
            term.plan.amount_per_term_cents,
            settings.skip_penalty_rate,
            settings.skip_penalty_floor_cents,
        )
