"""Speed-score computation.

Pure functions only: the same answers and timings always produce the same
score. Timings are caller supplied and untrusted, so they are validated here
rather than clamped.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, Sequence

from .content import ContentSet
from .errors import ComputeError, ValidationError

QUICK_ANSWER_SECONDS = 60
QUICK_ANSWER_MIN_ACCURACY = 75
QUICK_ANSWER_BONUS = 1.2
SLOW_ANSWER_SECONDS = 120
SLOW_ANSWER_PENALTY = 0.8


@dataclass(frozen=True)
class Score:
    correct_answers: int
    total_questions: int
    accuracy: float
    words_per_minute: int
    speed_score: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def validate_seconds(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{name} must be a positive number of seconds")
    return float(value)


def count_correct(user_answers: Sequence[Any], content: ContentSet) -> int:
    correct = 0
    for answer, question in zip(user_answers, content.questions):
        if isinstance(answer, bool) or not isinstance(answer, int):
            continue
        if answer == question.correct_answer:
            correct += 1
    return correct


def speed_score(words_per_minute: int, accuracy: float, question_time_seconds: float) -> int:
    value = words_per_minute * (accuracy / 100)
    if question_time_seconds < QUICK_ANSWER_SECONDS and accuracy > QUICK_ANSWER_MIN_ACCURACY:
        value *= QUICK_ANSWER_BONUS
    if question_time_seconds > SLOW_ANSWER_SECONDS:
        value *= SLOW_ANSWER_PENALTY
    return round_half_up(value)


def score(
    user_answers: Sequence[Any],
    content: ContentSet,
    reading_time_seconds: Any,
    question_time_seconds: Any,
) -> Score:
    reading = validate_seconds("readingTimeSeconds", reading_time_seconds)
    answering = validate_seconds("questionTimeSeconds", question_time_seconds)
    total_questions = len(content.questions)
    if total_questions == 0:
        raise ComputeError("content set has no questions")

    correct = count_correct(user_answers, content)
    accuracy = correct / total_questions * 100
    raw_wpm = content.word_count / (reading / 60)
    # The bonus is the largest factor a score can get; it must stay a finite float
    if not math.isfinite(raw_wpm * QUICK_ANSWER_BONUS):
        raise ValidationError("readingTimeSeconds is too small to compute a reading speed")
    wpm = round_half_up(raw_wpm)
    return Score(
        correct_answers=correct,
        total_questions=total_questions,
        accuracy=accuracy,
        words_per_minute=wpm,
        speed_score=speed_score(wpm, accuracy, answering),
    )
