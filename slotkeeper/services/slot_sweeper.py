# slotkeeper/services/slot_sweeper.py
"""
Staleness Sweeper

Periodically recomputes the next available slot of every published provider
whose cached value is missing or already in the past. This is the backstop
that bounds staleness when write-triggered invalidation is missed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.run_context import RunContext
from ..core.timezone_utils import ensure_utc, utc_now
from ..database import SessionFactory, session_scope
from ..repositories.provider_repository import ProviderRepository
from ..utils.fan_out import fan_out
from .base import BaseService
from .next_slot_service import NextSlotService


@dataclass
class SweepItemResult:
    provider_id: str
    business_name: Optional[str]
    previous_slot: Optional[date] = None
    new_slot: Optional[date] = None
    changed: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "business_name": self.business_name,
            "previous_slot": self.previous_slot.isoformat() if self.previous_slot else None,
            "new_slot": self.new_slot.isoformat() if self.new_slot else None,
            "changed": self.changed,
            "error": self.error,
        }


@dataclass
class SweepSummary:
    candidates: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    skipped: int = 0
    duration_ms: int = 0
    results: List[SweepItemResult] = field(default_factory=list)
    operations: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidates": self.candidates,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "errors": self.errors,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
            "results": [result.to_dict() for result in self.results],
            "operations": self.operations,
        }


class SlotSweeper(BaseService):
    """Recomputes expired or missing cached slots in bounded concurrency."""

    def __init__(
        self,
        db: Session,
        session_factory: Optional[SessionFactory] = None,
        run_context: Optional[RunContext] = None,
        max_concurrency: Optional[int] = None,
    ):
        super().__init__(db, run_context or RunContext(name="slot_sweep"))
        self.session_factory = session_factory
        self.max_concurrency = max_concurrency or settings.sweep_max_concurrency
        self.provider_repository = ProviderRepository(db, self.run_context)

    def select_candidates(
        self, now: datetime, force: bool = False
    ) -> Tuple[List[Tuple[str, Optional[str]]], int]:
        """
        Providers to recompute, deduplicated by id, plus the published total.

        ``force`` selects every published provider.
        """
        published_total = self.provider_repository.count_published()
        if force:
            providers = self.provider_repository.get_published()
        else:
            providers = [
                *self.provider_repository.get_published_with_slot_before(now),
                *self.provider_repository.get_published_without_slot(),
            ]

        seen: Dict[str, Optional[str]] = {}
        for provider in providers:
            seen.setdefault(provider.id, provider.business_name)
        return list(seen.items()), published_total

    def _refresh_one(self, candidate: Tuple[str, Optional[str]], now: datetime) -> SweepItemResult:
        provider_id, business_name = candidate
        with session_scope(self.session_factory) as session:
            refreshed = NextSlotService(session, self.run_context).refresh_provider(provider_id, now)
        return SweepItemResult(
            provider_id=provider_id,
            business_name=business_name,
            previous_slot=refreshed.previous_slot,
            new_slot=refreshed.new_slot,
            changed=refreshed.changed,
        )

    @BaseService.measure_operation("sweep_expired_slots")
    def run(self, now: Optional[datetime] = None, force: bool = False) -> SweepSummary:
        now = ensure_utc(now) if now else utc_now()
        candidates, published_total = self.select_candidates(now, force=force)
        summary = SweepSummary(
            candidates=len(candidates),
            skipped=max(0, published_total - len(candidates)),
        )
        self.logger.info(
            f"Slot sweep: {len(candidates)} candidates out of {published_total} published providers"
        )

        outcomes = fan_out(
            candidates,
            lambda candidate: self._refresh_one(candidate, now),
            max_concurrency=self.max_concurrency,
            thread_name_prefix="slot-sweep",
        )
        for outcome in outcomes:
            if outcome.ok:
                result = outcome.value
                if result.changed:
                    summary.updated += 1
                else:
                    summary.unchanged += 1
            else:
                provider_id, business_name = outcome.item
                self.logger.error(
                    f"Slot sweep failed for provider {provider_id}: {outcome.error}"
                )
                result = SweepItemResult(
                    provider_id=provider_id,
                    business_name=business_name,
                    error=str(outcome.error),
                )
                summary.errors += 1
            summary.results.append(result)

        summary.duration_ms = self.run_context.elapsed_ms
        summary.operations = self.run_context.log_summary(self.logger)
        self.logger.info(
            f"Slot sweep done: {summary.updated} updated, {summary.unchanged} unchanged, "
            f"{summary.errors} errors, {summary.skipped} skipped in {summary.duration_ms}ms"
        )
        return summary
