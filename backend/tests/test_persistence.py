import asyncio
import time

from conftest import FailingWriteStore
from readspeed.bounded import try_with_timeout
from readspeed.errors import PersistenceError
from readspeed.persistence import AssessmentRecorder, UserStatsStore
from readspeed.store import AssessmentRecord, UserStats


def _record(user_id, score=100):
    return AssessmentRecord(
        user_id=user_id,
        passage="p",
        questions=[],
        user_answers=[],
        reading_time_seconds=10,
        question_time_seconds=10,
        accuracy=100.0,
        speed_score=score,
        words_per_minute=score,
    )


def test_try_with_timeout_returns_value():
    outcome = asyncio.run(try_with_timeout(lambda: 42, 1.0))
    assert outcome.ok
    assert outcome.value == 42


def test_try_with_timeout_captures_errors():
    def boom():
        raise PersistenceError("down")

    outcome = asyncio.run(try_with_timeout(boom, 1.0))
    assert not outcome.ok
    assert isinstance(outcome.error, PersistenceError)
    assert not outcome.timed_out


def test_try_with_timeout_abandons_slow_operation():
    started = time.monotonic()

    async def run():
        outcome = await try_with_timeout(lambda: time.sleep(0.5), 0.05)
        return outcome, time.monotonic() - started

    outcome, elapsed = asyncio.run(run())
    assert not outcome.ok
    assert outcome.timed_out
    assert elapsed < 0.4


def test_recorder_saves_through_store(durable):
    user = durable.create_user("a@example.com", "hash", 10)
    outcome = asyncio.run(AssessmentRecorder(durable, 1.0).record(_record(user.id)))
    assert outcome.ok
    assert [a.id for a in durable.recent_assessments(user.id)] == [outcome.value]


def test_recorder_failure_is_reported_not_raised(unreachable):
    outcome = asyncio.run(AssessmentRecorder(unreachable, 1.0).record(_record("someone")))
    assert not outcome.ok


def test_stats_exact_mode_on_durable_store(durable, memory):
    user = durable.create_user("a@example.com", "hash", 10)
    record = _record(user.id, 80)
    durable.save_assessment(record)
    stats = UserStatsStore(durable, memory, 1.0)

    outcome = asyncio.run(stats.increment_and_update(user.id, 80, assessment_id=record.id))
    assert outcome.ok
    assert outcome.value == UserStats(1, 80, 80)


def test_stats_fall_back_to_incremental_mode(engine, memory):
    failing = FailingWriteStore(engine)
    user = memory.create_user("a@example.com", "hash", 10)
    memory.update_stats_incremental(user.id, 100)
    stats = UserStatsStore(failing, memory, 1.0)

    outcome = asyncio.run(stats.increment_and_update(user.id, 50, assessment_id="unsaved"))
    assert outcome.ok
    assert outcome.value == UserStats(2, 75, 100)


def test_memory_store_uses_incremental_mode(memory):
    user = memory.create_user("a@example.com", "hash", 10)
    stats = UserStatsStore(memory, memory, 1.0)
    asyncio.run(stats.increment_and_update(user.id, 60, assessment_id="a1"))
    outcome = asyncio.run(stats.increment_and_update(user.id, 91, assessment_id="a2"))
    assert outcome.value == UserStats(2, 76, 91)  # 75.5 rounds up


def test_stats_fail_when_both_modes_fail(unreachable, memory):
    outcome = asyncio.run(UserStatsStore(unreachable, memory, 1.0).increment_and_update("ghost", 50, assessment_id="unsaved"))
    assert not outcome.ok
