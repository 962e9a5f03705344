"""Best-effort persistence for the submission flow.

Every write goes through ``try_with_timeout``; a timed-out write may still
land after the request has answered.
"""
from __future__ import annotations
import logging

from .bounded import Outcome, try_with_timeout
from .store import AssessmentRecord, MemoryStore, Store, UserStats

logger = logging.getLogger(__name__)


class AssessmentRecorder:
    def __init__(self, store: Store, timeout: float) -> None:
        self.store = store
        self.timeout = timeout

    async def record(self, assessment: AssessmentRecord) -> Outcome[str]:
        return await try_with_timeout(
            lambda: self.store.save_assessment(assessment),
            self.timeout,
            label=f"record assessment ({self.store.name})",
        )


class UserStatsStore:
    """Keeps per-user count, average and best score.

    Exact mode re-aggregates every persisted score and is used while the
    active store is durable. Incremental mode only folds the new score into
    the running average held by the memory fallback; after a fallback period
    it can drift from the true history and is never reconciled.

    The exact update matches the current submission by assessment id, so a
    record write that timed out but landed before the re-aggregation is not
    counted twice; one that lands afterwards is picked up by the next one.
    """

    def __init__(self, store: Store, fallback: MemoryStore, timeout: float) -> None:
        self.store = store
        self.fallback = fallback
        self.timeout = timeout

    async def increment_and_update(self, user_id: str, speed_score: int, *, assessment_id: str) -> Outcome[UserStats]:
        if self.store.durable:
            exact = await try_with_timeout(
                lambda: self.store.update_stats_exact(user_id, speed_score, assessment_id=assessment_id),
                self.timeout,
                label="exact stats update",
            )
            if exact.ok:
                return exact
        outcome = await try_with_timeout(
            lambda: self.fallback.update_stats_incremental(user_id, speed_score),
            self.timeout,
            label="incremental stats update",
        )
        if outcome.ok:
            logger.warning("Stats for user %s updated incrementally; they may diverge from full history", user_id)
        return outcome
