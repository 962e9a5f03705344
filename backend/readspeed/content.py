from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .errors import ValidationError

# Average adult silent-reading speed used for the reading-time estimate
ESTIMATE_WPM = 200


@dataclass(frozen=True)
class Question:
    question: str
    options: Tuple[str, ...]
    correct_answer: int


@dataclass(frozen=True)
class ContentSet:
    passage: str
    questions: Tuple[Question, ...]

    @property
    def word_count(self) -> int:
        return len(self.passage.split(" "))

    def snapshot(self) -> List[Dict[str, Any]]:
        """Full question list, answers included, for the assessment record."""
        return [
            {"question": q.question, "options": list(q.options), "correctAnswer": q.correct_answer}
            for q in self.questions
        ]


SAMPLE_CONTENT: Tuple[ContentSet, ...] = (
    ContentSet(
        passage=(
            "Functions are mathematical entities that assign exactly one output to each input. "
            "A function can be represented as f(x) where x is the input variable. "
            "Quadratic functions follow the form f(x) = ax² + bx + c, where a, b, and c are constants and a ≠ 0. "
            "The graph of a quadratic function is a parabola. "
            "The quadratic formula x = (-b ± √(b² - 4ac)) / 2a is used to find the roots of a quadratic equation ax² + bx + c = 0. "
            "When solving systems of equations, methods include substitution, elimination, and matrix operations. "
            "Each method has specific scenarios where it's most efficient."
        ),
        questions=(
            Question(
                "What is the general form of a quadratic function?",
                ("f(x) = ax + b", "f(x) = ax² + bx + c", "f(x) = a/x + b", "f(x) = ax³ + bx² + c"),
                1,
            ),
            Question(
                "What is the graph of a quadratic function called?",
                ("Circle", "Parabola", "Line", "Hyperbola"),
                1,
            ),
            Question(
                "In the quadratic formula, what must be true about the coefficient 'a'?",
                ("a = 0", "a ≠ 0", "a > 0", "a < 0"),
                1,
            ),
            Question(
                "Which methods are mentioned for solving systems of equations?",
                (
                    "Only substitution",
                    "Substitution and elimination",
                    "Substitution, elimination, and matrix operations",
                    "Only matrix operations",
                ),
                2,
            ),
        ),
    ),
)


class ContentProvider:
    def __init__(self, sets: Tuple[ContentSet, ...] = SAMPLE_CONTENT) -> None:
        self._sets = sets

    def count(self) -> int:
        return len(self._sets)

    def content_set(self, index: int = 0) -> ContentSet:
        # bool is an int subclass; True must not select set 1
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < self.count():
            raise ValidationError(f"passageIndex must be between 0 and {self.count() - 1}")
        return self._sets[index]

    def get_content(self, index: int = 0) -> Dict[str, Any]:
        """Client-facing view of a content set; correct answers are stripped."""
        content = self.content_set(index)
        word_count = content.word_count
        return {
            "passage": content.passage,
            "questions": [{"question": q.question, "options": list(q.options)} for q in content.questions],
            "wordCount": word_count,
            "estimatedReadingTime": math.ceil(word_count / ESTIMATE_WPM),
        }


content_provider = ContentProvider()
