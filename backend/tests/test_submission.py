import asyncio

import pytest

from conftest import ANSWERS, FailingWriteStore, StallingStore
from readspeed.content import content_provider
from readspeed.errors import ValidationError
from readspeed.submission import SubmissionOrchestrator


def _submit(orchestrator, user_id, answers=ANSWERS, reading=45, question=30, index=0):
    return asyncio.run(orchestrator.submit(user_id, answers, reading, question, index))


def test_submission_persists_and_updates_exact_stats(durable, memory):
    user = durable.create_user("a@example.com", "hash", 10)
    orchestrator = SubmissionOrchestrator(content_provider, durable, memory, 1.0)

    first = _submit(orchestrator, user.id)
    second = _submit(orchestrator, user.id, answers=[1, 0, 0, 0], reading=60, question=150)

    assert first["speedScore"] == 172
    assert first["correctAnswers"] == 4
    assert first["totalTime"] == 75
    assert first["persisted"] == {"assessment": True, "stats": True}
    assert first["userStats"] == {"totalAssessments": 1, "averageSpeedScore": 172, "bestSpeedScore": 172}

    # 107 wpm * 25% * 0.8 = 21.4
    assert second["speedScore"] == 21
    assert second["userStats"] == {"totalAssessments": 2, "averageSpeedScore": 97, "bestSpeedScore": 172}
    assert len(durable.recent_assessments(user.id)) == 2


def test_best_score_is_monotonic_across_submissions(durable, memory):
    user = durable.create_user("a@example.com", "hash", 10)
    orchestrator = SubmissionOrchestrator(content_provider, durable, memory, 1.0)
    totals, bests = [], []
    for reading in (90, 30, 120, 45):
        stats = _submit(orchestrator, user.id, reading=reading)["userStats"]
        totals.append(stats["totalAssessments"])
        bests.append(stats["bestSpeedScore"])
    assert totals == [1, 2, 3, 4]
    assert bests == sorted(bests)


def test_unavailable_store_degrades_to_single_submission_stats(unreachable, memory):
    orchestrator = SubmissionOrchestrator(content_provider, unreachable, memory, 1.0)
    result = _submit(orchestrator, "user-without-record")

    assert result["speedScore"] == 172
    assert result["persisted"] == {"assessment": False, "stats": False}
    assert result["userStats"] == {"totalAssessments": 1, "averageSpeedScore": 172, "bestSpeedScore": 172}


def test_stalled_store_is_abandoned(engine, memory):
    store = StallingStore(engine)
    user = store.create_user("a@example.com", "hash", 10)
    orchestrator = SubmissionOrchestrator(content_provider, store, memory, 0.05)

    result = _submit(orchestrator, user.id)
    assert result["persisted"] == {"assessment": False, "stats": False}
    assert result["userStats"]["totalAssessments"] == 1


def test_failed_record_still_counts_current_score(engine, memory):
    store = FailingWriteStore(engine)
    user = memory.create_user("a@example.com", "hash", 10)
    orchestrator = SubmissionOrchestrator(content_provider, store, memory, 1.0)

    result = _submit(orchestrator, user.id)
    assert result["persisted"] == {"assessment": False, "stats": True}
    assert result["userStats"] == {"totalAssessments": 1, "averageSpeedScore": 172, "bestSpeedScore": 172}


def test_invalid_input_fails_before_persisting(memory):
    user = memory.create_user("a@example.com", "hash", 10)
    orchestrator = SubmissionOrchestrator(content_provider, memory, memory, 1.0)

    with pytest.raises(ValidationError):
        _submit(orchestrator, user.id, reading=0)
    with pytest.raises(ValidationError):
        _submit(orchestrator, user.id, index=3)
    assert memory.recent_assessments(user.id) == []
    assert memory.get_user(user.id).stats.total_assessments == 0
