"""
Question bank for a quiz session.
Handles parsing, validation and freezing of the ordered question list.
"""
import logging
from typing import List, Optional

from .errors import StateConflictError, UserInputError
from .models import Question, QuizSettings

logger = logging.getLogger(__name__)


def parse_time_limit(raw: Optional[str], settings: QuizSettings) -> int:
    """
    Parse a question time limit, falling back to the default and clamping to the allowed range.

    Args:
        raw: Time limit text as typed by the owner, may be empty
        settings: Quiz settings with default and bounds

    Returns:
        Time limit in whole seconds
    """
    try:
        seconds = int(str(raw).strip())
    except (TypeError, ValueError):
        seconds = settings.default_question_seconds
    if seconds <= 0:
        seconds = settings.default_question_seconds
    return max(settings.min_question_seconds, min(seconds, settings.max_question_seconds))


def build_question(
    text: str,
    options: List[str],
    correct_option: str,
    time_limit: Optional[str],
    settings: QuizSettings
) -> Question:
    """
    Validate raw question fields and build a Question.

    Raises:
        UserInputError: If the text is empty, fewer than two options are given,
            or the correct option is not a valid 1-based index
    """
    text = text.strip()
    if not text:
        raise UserInputError("Question text cannot be empty")

    options = [option.strip() for option in options if option.strip()]
    if len(options) < 2:
        raise UserInputError("A question needs at least 2 options")

    try:
        correct = int(str(correct_option).strip())
    except (TypeError, ValueError):
        raise UserInputError(f"Correct option must be a number between 1 and {len(options)}")
    if not 1 <= correct <= len(options):
        raise UserInputError(f"Correct option must be between 1 and {len(options)}")

    return Question(
        text=text,
        options=options,
        correct_option=correct,
        time_limit_seconds=parse_time_limit(time_limit, settings)
    )


class QuestionBank:
    """Ordered, append-only list of questions; frozen once the join phase opens."""

    def __init__(self):
        self._questions: List[Question] = []
        self._frozen = False

    def add(self, question: Question) -> int:
        """
        Append a question to the bank.

        Returns:
            1-based number of the added question

        Raises:
            StateConflictError: If the bank has been frozen
        """
        if self._frozen:
            raise StateConflictError("Questions cannot be added once the quiz has started")
        self._questions.append(question)
        logger.debug(f"Question {len(self._questions)} added: {question.text!r}")
        return len(self._questions)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def get(self, index: int) -> Question:
        """Return the question at a 0-based index."""
        return self._questions[index]

    def is_last(self, index: int) -> bool:
        return index == len(self._questions) - 1

    def __len__(self) -> int:
        return len(self._questions)
