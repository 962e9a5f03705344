from __future__ import annotations
import enum
import logging
from typing import Any, Dict, Sequence

from . import scoring
from .content import ContentProvider
from .persistence import AssessmentRecorder, UserStatsStore
from .store import AssessmentRecord, MemoryStore, Store, UserStats

logger = logging.getLogger(__name__)


class Stage(enum.Enum):
    SCORING = "scoring"
    RECORDING = "recording"
    STATS_UPDATE = "stats_update"
    RESPONDING = "responding"


class SubmissionOrchestrator:
    """Score a submission, then persist it and update stats on a best-effort basis.

    Only scoring can fail the request. Recording and the stats update are
    attempted once each; when the stats update fails the response carries
    single-submission stats instead.
    """

    def __init__(self, content: ContentProvider, store: Store, fallback: MemoryStore, timeout: float) -> None:
        self.content = content
        self.recorder = AssessmentRecorder(store, timeout)
        self.stats = UserStatsStore(store, fallback, timeout)

    async def submit(
        self,
        user_id: str,
        user_answers: Sequence[Any],
        reading_time_seconds: Any,
        question_time_seconds: Any,
        passage_index: int = 0,
    ) -> Dict[str, Any]:
        logger.debug("submission %s: %s", user_id, Stage.SCORING.value)
        content_set = self.content.content_set(passage_index)
        result = scoring.score(user_answers, content_set, reading_time_seconds, question_time_seconds)
        reading = float(reading_time_seconds)
        answering = float(question_time_seconds)

        logger.debug("submission %s: %s", user_id, Stage.RECORDING.value)
        assessment = AssessmentRecord(
            user_id=user_id,
            passage=content_set.passage,
            questions=content_set.snapshot(),
            user_answers=list(user_answers),
            reading_time_seconds=reading,
            question_time_seconds=answering,
            accuracy=result.accuracy,
            speed_score=result.speed_score,
            words_per_minute=result.words_per_minute,
        )
        recorded = await self.recorder.record(assessment)

        logger.debug("submission %s: %s", user_id, Stage.STATS_UPDATE.value)
        stats_outcome = await self.stats.increment_and_update(user_id, result.speed_score, assessment_id=assessment.id)
        if stats_outcome.ok:
            stats = stats_outcome.value
        else:
            logger.warning("Stats unavailable for user %s; reporting single-submission stats", user_id)
            stats = UserStats.single(result.speed_score)

        logger.debug("submission %s: %s", user_id, Stage.RESPONDING.value)
        return {
            "speedScore": result.speed_score,
            "accuracy": result.accuracy,
            "wordsPerMinute": result.words_per_minute,
            "responseTime": answering,
            "retentionRate": result.accuracy,
            "correctAnswers": result.correct_answers,
            "totalQuestions": result.total_questions,
            "readingTime": reading,
            "questionTime": answering,
            "totalTime": assessment.total_time_seconds,
            "userStats": stats.to_dict(),
            "persisted": {"assessment": recorded.ok, "stats": stats_outcome.ok},
        }
