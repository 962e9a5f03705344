from __future__ import annotations
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from .auth import CurrentUser, get_current_user
from ..errors import NotFoundError, PersistenceError
from ..scoring import round_half_up
from ..store import AssessmentRecord, MemoryStore, Store, find_user, get_fallback_store, get_store
import logging


router = APIRouter(prefix="/user", tags=["user"])

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10
TREND_WINDOW = 3


def improvement_rate(assessments: List[AssessmentRecord]) -> int:
    """Percent change from the oldest to the newest few scores (list is newest first)."""
    if len(assessments) < 2:
        return 0
    window = min(TREND_WINDOW, len(assessments))
    recent = assessments[:window]
    older = assessments[-window:]
    recent_avg = sum(a.speed_score for a in recent) / len(recent)
    older_avg = sum(a.speed_score for a in older) / len(older)
    if older_avg == 0:
        return 0
    return round_half_up((recent_avg - older_avg) / older_avg * 100)


def performance_trends(assessments: List[AssessmentRecord]) -> Dict[str, int]:
    if not assessments:
        return {"averageAccuracy": 0, "averageWPM": 0, "improvementRate": 0}
    return {
        "averageAccuracy": round_half_up(sum(a.accuracy for a in assessments) / len(assessments)),
        "averageWPM": round_half_up(sum(a.words_per_minute for a in assessments) / len(assessments)),
        "improvementRate": improvement_rate(assessments),
    }


@router.get("/progress")
async def get_progress(
    current: CurrentUser = Depends(get_current_user),
    store: Store = Depends(get_store),
    fallback: MemoryStore = Depends(get_fallback_store),
) -> Dict[str, Any]:
    user, holder = find_user(store, fallback, current.user_id)
    if user is None:
        raise NotFoundError("User not found")
    try:
        assessments = holder.recent_assessments(user.id, RECENT_LIMIT)
    except PersistenceError as exc:
        logger.warning("Could not load assessments for %s: %s", user.id, exc)
        assessments = []
    return {
        "user": {
            "email": user.email,
            **user.stats.to_dict(),
            "memberSince": user.created_at.isoformat(),
        },
        "recentAssessments": [
            {
                "speedScore": a.speed_score,
                "accuracy": a.accuracy,
                "wordsPerMinute": a.words_per_minute,
                "date": a.created_at.isoformat(),
                "totalTime": a.total_time_seconds,
            }
            for a in assessments
        ],
        "performanceTrends": performance_trends(assessments),
    }
