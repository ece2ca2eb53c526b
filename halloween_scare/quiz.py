"""Data-structures quiz questions served from a refillable cache."""

from __future__ import annotations

import json
import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
import requests

from halloween_scare.roast import GeminiClient, GeminiError

LOGGER = logging.getLogger(__name__)

BATCH_SIZE = 5
OPTION_KEYS = ("A", "B", "C", "D")

EXPRESSION_TO_ANSWER: Dict[str, str] = {
    "happy": "A",
    "surprised": "B",
    "neutral": "C",
    "angry": "D",
}

QUIZ_PROMPT = (
    "Create 5 different computer science multiple choice questions about data "
    "structures and algorithms.\n\n"
    "Return your response as a valid JSON array where every element looks like:\n"
    '{"question": "...", "options": {"A": "...", "B": "...", "C": "...", "D": "..."}, '
    '"correctAnswer": "B"}\n\n'
    "Cover different topics such as arrays, trees, sorting, searching, time and "
    "space complexity, stacks, queues and graphs. Only return the JSON array, no other text."
)

_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class QuizQuestion:
    question: str
    options: Dict[str, str]
    correct_answer: str

    def is_correct(self, answer: Optional[str]) -> bool:
        return (answer or "").strip().upper() == self.correct_answer

    @classmethod
    def from_dict(cls, data: object) -> "QuizQuestion":
        """Validate a decoded JSON object; raises ``ValueError`` when malformed."""
        if not isinstance(data, dict):
            raise ValueError("Question entry must be an object")
        question = data.get("question")
        options = data.get("options")
        answer = data.get("correctAnswer", data.get("correct_answer"))
        if not isinstance(question, str) or not question.strip():
            raise ValueError("Question text is missing")
        if not isinstance(options, dict) or set(options) != set(OPTION_KEYS):
            raise ValueError("Question must provide options A-D")
        if answer not in OPTION_KEYS:
            raise ValueError(f"Invalid correct answer: {answer!r}")
        return cls(
            question=question.strip(),
            options={key: str(options[key]) for key in OPTION_KEYS},
            correct_answer=answer,
        )


FALLBACK_QUESTIONS = (
    QuizQuestion(
        "What is the time complexity of binary search on a sorted array?",
        {"A": "O(1)", "B": "O(log n)", "C": "O(n)", "D": "O(n²)"},
        "B",
    ),
    QuizQuestion(
        "Which data structure follows LIFO (Last In, First Out) principle?",
        {"A": "Queue", "B": "Array", "C": "Stack", "D": "Linked List"},
        "C",
    ),
    QuizQuestion(
        "What is the average time complexity of insertion in a hash table?",
        {"A": "O(1)", "B": "O(log n)", "C": "O(n)", "D": "O(n log n)"},
        "A",
    ),
    QuizQuestion(
        "Which sorting algorithm has the best average case time complexity?",
        {"A": "Bubble Sort", "B": "Quick Sort", "C": "Selection Sort", "D": "Insertion Sort"},
        "B",
    ),
    QuizQuestion(
        "What is the space complexity of a recursive function that calls itself n times?",
        {"A": "O(1)", "B": "O(log n)", "C": "O(n)", "D": "O(n²)"},
        "C",
    ),
)


def parse_question_batch(text: str) -> List[QuizQuestion]:
    """Extract and validate the JSON array embedded in a model response."""
    match = _ARRAY_PATTERN.search(text)
    if match is None:
        raise ValueError("No JSON array found in response")
    try:
        decoded = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON array: {exc}") from exc
    if not isinstance(decoded, list) or not decoded:
        raise ValueError("Question array is empty")
    return [QuizQuestion.from_dict(entry) for entry in decoded]


class GeminiQuestionGenerator:
    """Produce question batches from Gemini, or one fallback question on failure."""

    def __init__(
        self,
        client: Optional[GeminiClient],
        *,
        rng: Optional[np.random.Generator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.rng = rng if rng is not None else np.random.default_rng()
        self.logger = logger or LOGGER

    def fallback(self) -> List[QuizQuestion]:
        index = int(self.rng.integers(len(FALLBACK_QUESTIONS)))
        self.logger.info("Using fallback question %s", index + 1)
        return [FALLBACK_QUESTIONS[index]]

    def __call__(self) -> List[QuizQuestion]:
        if self.client is None:
            return self.fallback()
        try:
            text = self.client.generate(
                QUIZ_PROMPT,
                generation_config={"temperature": 0.1, "maxOutputTokens": 10000},
            )
            questions = parse_question_batch(text)
        except (requests.RequestException, GeminiError, ValueError) as exc:
            self.logger.warning("Question generation failed: %s", exc)
            return self.fallback()
        self.logger.info("Generated %s quiz question(s)", len(questions))
        return questions[:BATCH_SIZE]


class QuestionCache:
    """Serve questions in order, refilling from ``generator`` when exhausted."""

    def __init__(self, generator: Callable[[], Sequence[QuizQuestion]]) -> None:
        self._generator = generator
        self._questions: List[QuizQuestion] = []
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        return len(self._questions) - self._cursor

    def get_or_refill(self) -> QuizQuestion:
        with self._lock:
            if self._cursor >= len(self._questions):
                batch = list(self._generator())
                if not batch:
                    raise ValueError("Question generator returned no questions")
                self._questions = batch
                self._cursor = 0
            question = self._questions[self._cursor]
            self._cursor += 1
            return question


__all__ = [
    "BATCH_SIZE",
    "EXPRESSION_TO_ANSWER",
    "FALLBACK_QUESTIONS",
    "GeminiQuestionGenerator",
    "QuestionCache",
    "QuizQuestion",
    "parse_question_batch",
]
