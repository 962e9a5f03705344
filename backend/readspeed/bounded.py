"""Bounded waits for blocking store calls.

One attempt, bounded wait, no retries. A timed-out call keeps running in its
worker thread and may still land after the caller has moved on.
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from .errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, PersistenceError) and self.error.timed_out


async def try_with_timeout(op: Callable[[], T], budget: float, *, label: str = "operation") -> Outcome[T]:
    try:
        value = await asyncio.wait_for(asyncio.to_thread(op), timeout=budget)
    except asyncio.TimeoutError:
        logger.warning("%s did not finish within %.2fs; abandoning it", label, budget)
        return Outcome(ok=False, error=PersistenceError(f"{label} timed out", timed_out=True))
    except Exception as exc:
        logger.warning("%s failed: %s", label, exc)
        return Outcome(ok=False, error=exc)
    return Outcome(ok=True, value=value)

