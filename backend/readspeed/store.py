"""Persistence capability with a durable and an in-memory implementation.

``DurableStore`` writes through SQLAlchemy. ``MemoryStore`` is the degraded
fallback: one instance per process, created at import, never expired and
lost on restart. It is not shared between instances, so it is a cache for a
single-instance deployment, never a source of truth.
"""
from __future__ import annotations
import itertools
import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import db
from .bounded import try_with_timeout
from .errors import PersistenceError, ValidationError
from .models import Assessment, User
from .scoring import round_half_up
from .settings import settings

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "User already exists with this email"


@dataclass(frozen=True)
class UserStats:
    total_assessments: int = 0
    average_speed_score: int = 0
    best_speed_score: int = 0

    @classmethod
    def single(cls, speed_score: int) -> "UserStats":
        """Stats as if this were the user's only submission."""
        return cls(total_assessments=1, average_speed_score=speed_score, best_speed_score=speed_score)

    def exact(self, scores: List[int]) -> "UserStats":
        # scores already includes the submission being counted
        return UserStats(
            total_assessments=self.total_assessments + 1,
            average_speed_score=round_half_up(sum(scores) / len(scores)),
            best_speed_score=max([self.best_speed_score, *scores]),
        )

    def incremental(self, speed_score: int) -> "UserStats":
        n = self.total_assessments + 1
        return UserStats(
            total_assessments=n,
            average_speed_score=round_half_up((self.average_speed_score * (n - 1) + speed_score) / n),
            best_speed_score=max(self.best_speed_score, speed_score),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalAssessments": self.total_assessments,
            "averageSpeedScore": self.average_speed_score,
            "bestSpeedScore": self.best_speed_score,
        }


@dataclass
class UserRecord:
    id: str
    email: str
    password_hash: str
    credits: int
    stats: UserStats = field(default_factory=UserStats)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def public(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "credits": self.credits, **self.stats.to_dict()}


@dataclass(frozen=True)
class AssessmentRecord:
    user_id: str
    passage: str
    questions: List[Dict[str, Any]]
    user_answers: List[Any]
    reading_time_seconds: float
    question_time_seconds: float
    accuracy: float
    speed_score: int
    words_per_minute: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def total_time_seconds(self) -> float:
        return self.reading_time_seconds + self.question_time_seconds

    @property
    def retention_rate(self) -> float:
        return self.accuracy


class Store(ABC):
    name = "store"
    durable = False

    @abstractmethod
    def create_user(self, email: str, password_hash: str, credits: int) -> UserRecord: ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[UserRecord]: ...

    @abstractmethod
    def save_assessment(self, record: AssessmentRecord) -> str: ...

    @abstractmethod
    def recent_assessments(self, user_id: str, limit: int = 10) -> List[AssessmentRecord]:
        """Newest first."""

    @abstractmethod
    def update_stats_exact(self, user_id: str, speed_score: int, *, assessment_id: str) -> UserStats:
        """Re-aggregate stats from every persisted score.

        ``speed_score`` is added unless the assessment ``assessment_id`` is
        already persisted, so a record that landed late is counted once.
        """

    @abstractmethod
    def update_stats_incremental(self, user_id: str, speed_score: int) -> UserStats: ...


class DurableStore(Store):
    name = "durable"
    durable = True

    def __init__(self, engine: Engine, session_factory: Optional[sessionmaker] = None) -> None:
        self.engine = engine
        self._session_factory = session_factory or sessionmaker(
            autocommit=False, autoflush=False, bind=engine, future=True
        )

    def available(self) -> bool:
        return db.ping(self.engine)

    def _session(self) -> Session:
        return self._session_factory()

    @staticmethod
    def _to_user(row: User) -> UserRecord:
        return UserRecord(
            id=row.id,
            email=row.email,
            password_hash=row.password_hash,
            credits=row.credits,
            stats=UserStats(row.total_assessments, row.average_speed_score, row.best_speed_score),
            created_at=row.created_at,
        )

    @staticmethod
    def _to_assessment(row: Assessment) -> AssessmentRecord:
        return AssessmentRecord(
            id=row.id,
            user_id=row.user_id,
            passage=row.passage,
            questions=json.loads(row.questions_json),
            user_answers=json.loads(row.user_answers_json),
            reading_time_seconds=row.reading_time_seconds,
            question_time_seconds=row.question_time_seconds,
            accuracy=row.accuracy,
            speed_score=row.speed_score,
            words_per_minute=row.words_per_minute,
            created_at=row.created_at,
        )

    def create_user(self, email: str, password_hash: str, credits: int) -> UserRecord:
        try:
            with self._session() as session:
                if session.execute(select(User.id).where(User.email == email)).first():
                    raise ValidationError(DUPLICATE_EMAIL)
                row = User(id=uuid.uuid4().hex, email=email, password_hash=password_hash, credits=credits)
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_user(row)
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            raise ValidationError(DUPLICATE_EMAIL)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"create_user failed: {exc}") from exc

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        try:
            with self._session() as session:
                row = session.get(User, user_id)
                return self._to_user(row) if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"get_user failed: {exc}") from exc

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            with self._session() as session:
                row = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
                return self._to_user(row) if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"get_user_by_email failed: {exc}") from exc

    def save_assessment(self, record: AssessmentRecord) -> str:
        row = Assessment(
            id=record.id,
            user_id=record.user_id,
            passage=record.passage,
            questions_json=json.dumps(record.questions),
            user_answers_json=json.dumps(record.user_answers),
            reading_time_seconds=record.reading_time_seconds,
            question_time_seconds=record.question_time_seconds,
            total_time_seconds=record.total_time_seconds,
            accuracy=record.accuracy,
            speed_score=record.speed_score,
            words_per_minute=record.words_per_minute,
            retention_rate=record.retention_rate,
            created_at=record.created_at,
        )
        try:
            with self._session() as session:
                session.add(row)
                session.commit()
            return record.id
        except SQLAlchemyError as exc:
            raise PersistenceError(f"save_assessment failed: {exc}") from exc

    def recent_assessments(self, user_id: str, limit: int = 10) -> List[AssessmentRecord]:
        try:
            with self._session() as session:
                rows = session.execute(
                    select(Assessment)
                    .where(Assessment.user_id == user_id)
                    .order_by(Assessment.created_at.desc())
                    .limit(limit)
                ).scalars().all()
                return [self._to_assessment(r) for r in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"recent_assessments failed: {exc}") from exc

    def _update_stats(self, user_id: str, compute) -> UserStats:
        try:
            with self._session() as session:
                row = session.get(User, user_id)
                if row is None:
                    raise PersistenceError(f"user {user_id} not found in durable store")
                current = UserStats(row.total_assessments, row.average_speed_score, row.best_speed_score)
                updated = compute(session, current)
                row.total_assessments = updated.total_assessments
                row.average_speed_score = updated.average_speed_score
                row.best_speed_score = updated.best_speed_score
                session.commit()
                return updated
        except SQLAlchemyError as exc:
            raise PersistenceError(f"stats update failed: {exc}") from exc

    def update_stats_exact(self, user_id: str, speed_score: int, *, assessment_id: str) -> UserStats:
        def compute(session: Session, current: UserStats) -> UserStats:
            rows = session.execute(
                select(Assessment.id, Assessment.speed_score).where(Assessment.user_id == user_id)
            ).all()
            scores = [row.speed_score for row in rows]
            if assessment_id not in {row.id for row in rows}:
                scores.append(speed_score)
            return current.exact(scores)

        return self._update_stats(user_id, compute)

    def update_stats_incremental(self, user_id: str, speed_score: int) -> UserStats:
        return self._update_stats(user_id, lambda _session, current: current.incremental(speed_score))


class MemoryStore(Store):
    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._users_by_email: Dict[str, UserRecord] = {}
        self._users_by_id: Dict[str, UserRecord] = {}
        self._assessments: Dict[str, List[AssessmentRecord]] = {}

    def clear(self) -> None:
        with self._lock:
            self._ids = itertools.count(1)
            self._users_by_email.clear()
            self._users_by_id.clear()
            self._assessments.clear()

    def create_user(self, email: str, password_hash: str, credits: int) -> UserRecord:
        with self._lock:
            if email in self._users_by_email:
                raise ValidationError(DUPLICATE_EMAIL)
            user = UserRecord(id=f"user_{next(self._ids)}", email=email, password_hash=password_hash, credits=credits)
            self._users_by_email[email] = user
            self._users_by_id[user.id] = user
            return replace(user)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            user = self._users_by_id.get(user_id)
            return replace(user) if user else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._lock:
            user = self._users_by_email.get(email)
            return replace(user) if user else None

    def save_assessment(self, record: AssessmentRecord) -> str:
        with self._lock:
            self._assessments.setdefault(record.user_id, []).append(record)
        return record.id

    def recent_assessments(self, user_id: str, limit: int = 10) -> List[AssessmentRecord]:
        with self._lock:
            records = list(self._assessments.get(user_id, []))
        return sorted(records, key=lambda r: r.created_at, reverse=True)[:limit]

    def _set_stats(self, user_id: str, compute) -> UserStats:
        with self._lock:
            user = self._users_by_id.get(user_id)
            if user is None:
                raise PersistenceError(f"user {user_id} not found in memory store")
            user.stats = compute(user.stats)
            return user.stats

    def update_stats_exact(self, user_id: str, speed_score: int, *, assessment_id: str) -> UserStats:
        def compute(current: UserStats) -> UserStats:
            records = self._assessments.get(user_id, [])
            scores = [r.speed_score for r in records]
            if assessment_id not in {r.id for r in records}:
                scores.append(speed_score)
            return current.exact(scores)

        return self._set_stats(user_id, compute)

    def update_stats_incremental(self, user_id: str, speed_score: int) -> UserStats:
        return self._set_stats(user_id, lambda current: current.incremental(speed_score))


memory_store = MemoryStore()
durable_store = DurableStore(db.engine, db.SessionLocal)

_last_selected: Optional[str] = None


async def select_store(mode: Optional[str] = None) -> Store:
    """Pick the store for one request according to ``store_mode``.

    In auto mode the health check shares the persistence time budget, so a
    stalled database selects the memory fallback instead of hanging.
    """
    global _last_selected
    mode = mode or settings.store_mode
    if mode == "memory":
        chosen: Store = memory_store
    elif mode == "durable":
        chosen = durable_store
    else:
        ping = await try_with_timeout(
            durable_store.available, settings.persistence_timeout_seconds, label="database health check"
        )
        chosen = durable_store if ping.ok and ping.value else memory_store
    if chosen.name != _last_selected:
        if chosen is memory_store and mode == "auto":
            logger.warning("Durable store unavailable; using in-memory fallback (data is lost on restart)")
        else:
            logger.info("Using %s store", chosen.name)
        _last_selected = chosen.name
    return chosen


async def get_store() -> Store:
    return await select_store()


def get_fallback_store() -> MemoryStore:
    return memory_store


def find_user(store: Store, fallback: MemoryStore, user_id: str) -> Tuple[Optional[UserRecord], Store]:
    """Look a user up in the active store, then in the memory fallback.

    Returns the user and the store that holds them.
    """
    try:
        user = store.get_user(user_id)
    except PersistenceError as exc:
        logger.warning("User lookup in %s store failed: %s", store.name, exc)
        user = None
    if user is None and store is not fallback:
        return fallback.get_user(user_id), fallback
    return user, store
