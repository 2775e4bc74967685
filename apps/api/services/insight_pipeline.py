"""
Insight Request Pipeline

Turns one InsightRequest into one analysis, charging credits only for
analyses that are actually delivered:

    IDLE -> VALIDATING -> FAILED(validation)
    VALIDATING -> CHARGING -> FAILED(insufficient_credits)
    CHARGING -> GENERATING -> FAILED(provider_error)   (credits refunded first)
    GENERATING -> COMPLETED

Credits are taken before the provider is called, so abandoning a slow request
never yields a free analysis; any provider failure gives them back.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from schemas import InsightRequest
from services import credit_ledger
from services.credit_ledger import InsufficientCredits
from services.insight_prompt import PromptLocale, build_analysis_prompt, system_instruction
from services.insight_provider import InsightProvider, ProviderError

logger = logging.getLogger(__name__)


class InsightState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CHARGING = "charging"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED = {
    InsightState.IDLE: {InsightState.VALIDATING},
    InsightState.VALIDATING: {InsightState.CHARGING, InsightState.FAILED},
    InsightState.CHARGING: {InsightState.GENERATING, InsightState.FAILED},
    InsightState.GENERATING: {InsightState.COMPLETED, InsightState.FAILED},
    InsightState.COMPLETED: set(),
    InsightState.FAILED: set(),
}


@dataclass(frozen=True)
class ValidationFailure:
    message: str
    field: Optional[str] = None


@dataclass(frozen=True)
class ProviderFailureInfo:
    summary: str
    status_code: Optional[int] = None
    refunded: int = 0


@dataclass
class InsightOutcome:
    state: InsightState = InsightState.IDLE
    analysis: Optional[str] = None
    generated_at: Optional[datetime] = None
    balance: Optional[int] = None
    validation_error: Optional[ValidationFailure] = None
    insufficient_credits: Optional[InsufficientCredits] = None
    provider_error: Optional[ProviderFailureInfo] = None
    transitions: List[InsightState] = field(default_factory=lambda: [InsightState.IDLE])

    @property
    def succeeded(self) -> bool:
        return self.state == InsightState.COMPLETED


def validate_request(request: InsightRequest) -> Optional[ValidationFailure]:
    """Return the first validation problem, or None."""
    has_reflection = request.mirror_data is not None and not request.mirror_data.is_empty()
    if not (request.relationships or request.wishlist_items or has_reflection):
        return ValidationFailure(
            "Nothing to analyze yet. Add relationships, wishes or reflections first.",
            field="relationships",
        )
    if request.user_age is not None and not 18 <= request.user_age <= 99:
        return ValidationFailure("Age must be between 18 and 99", field="userAge")
    return None


class InsightPipeline:
    def __init__(self, db: Session, provider: InsightProvider, *, price: int, locale: PromptLocale):
        self.db = db
        self.provider = provider
        self.price = price
        self.locale = locale

    def _move(self, outcome: InsightOutcome, user_id: UUID, new_state: InsightState) -> None:
        if new_state not in _ALLOWED[outcome.state]:
            raise RuntimeError(f"Illegal insight transition {outcome.state.value} -> {new_state.value}")
        logger.debug(
            f"Insight request {outcome.state.value} -> {new_state.value}",
            extra={"extra_fields": {"user_id": str(user_id)}},
        )
        outcome.state = new_state
        outcome.transitions.append(new_state)

    def run(self, user_id: UUID, request: InsightRequest) -> InsightOutcome:
        outcome = InsightOutcome()

        self._move(outcome, user_id, InsightState.VALIDATING)
        problem = validate_request(request)
        if problem:
            outcome.validation_error = problem
            self._move(outcome, user_id, InsightState.FAILED)
            return outcome

        # Built before charging: a request we can't render must not cost anything.
        prompt = build_analysis_prompt(request, self.locale)
        system = system_instruction(self.locale)

        self._move(outcome, user_id, InsightState.CHARGING)
        charge = credit_ledger.debit(self.db, user_id, self.price)
        if not charge.success:
            outcome.insufficient_credits = charge.error
            outcome.balance = charge.error.balance if charge.error else None
            self._move(outcome, user_id, InsightState.FAILED)
            return outcome

        self._move(outcome, user_id, InsightState.GENERATING)
        try:
            analysis = self.provider.generate(prompt, system)
        except ProviderError as e:
            outcome.balance = credit_ledger.refund(self.db, user_id, self.price)
            outcome.provider_error = ProviderFailureInfo(
                summary=e.summary, status_code=e.status_code, refunded=self.price
            )
            self._move(outcome, user_id, InsightState.FAILED)
            return outcome
        except Exception:
            # Unexpected failure: still give the credits back, then let it surface.
            credit_ledger.refund(self.db, user_id, self.price)
            raise

        outcome.analysis = analysis
        outcome.generated_at = datetime.now(timezone.utc)
        outcome.balance = credit_ledger.get_balance(self.db, user_id)
        self._move(outcome, user_id, InsightState.COMPLETED)
        logger.info(
            "Insight generated",
            extra={"extra_fields": {"user_id": str(user_id), "price": self.price, "balance": outcome.balance}},
        )
        return outcome
