"""
Text command parsing for group chat messages.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import UserInputError

CREATE_QUIZ = "create-quiz"
ADD_QUESTION = "add-question"
START_QUIZ = "start-quiz"
CLOSE_JOIN = "close-join"
GO_TO_QUESTION = "go-to-question"
ADD_PLAYER = "add-player"
CANCEL_QUIZ = "cancel-quiz"
JOIN = "join"
QUIZ_STATUS = "quiz-status"

OWNER_COMMANDS = frozenset([
    ADD_QUESTION, START_QUIZ, CLOSE_JOIN, GO_TO_QUESTION, ADD_PLAYER, CANCEL_QUIZ
])
KNOWN_COMMANDS = OWNER_COMMANDS | {CREATE_QUIZ, JOIN, QUIZ_STATUS}

ADD_QUESTION_FORMAT = "add-question|Question?|option 1,option 2,option 3|correctNumber|timeInSeconds"


@dataclass
class ParsedCommand:
    name: str
    args: List[str] = field(default_factory=list)


def parse_command(raw_text: str, prefix: str = "") -> Optional[ParsedCommand]:
    """
    Parse a group message into a command.

    `add-question` takes pipe-separated fields; every other command takes
    whitespace-separated arguments.

    Args:
        raw_text: Message text as typed
        prefix: Command prefix, e.g. "!"; messages without it are ignored

    Returns:
        ParsedCommand, or None if the message is not a known command
    """
    text = (raw_text or "").strip()
    if prefix:
        if not text.startswith(prefix):
            return None
        text = text[len(prefix):].strip()
    if not text:
        return None

    if '|' in text:
        head, *rest = text.split('|')
        name = head.strip().lower()
        if name == ADD_QUESTION:
            return ParsedCommand(name, [part.strip() for part in rest])
        return None

    name, *args = text.split()
    name = name.lower()
    if name not in KNOWN_COMMANDS:
        return None
    return ParsedCommand(name, args)


def parse_question_fields(args: List[str]) -> dict:
    """
    Split add-question arguments into raw question fields.

    Raises:
        UserInputError: If the text, options or correct option are missing
    """
    if len(args) < 3:
        raise UserInputError(f"Format: {ADD_QUESTION_FORMAT}")
    return {
        'text': args[0],
        'options': args[1].split(','),
        'correct_option': args[2],
        'time_limit': args[3] if len(args) > 3 else None,
    }


def parse_question_number(args: List[str]) -> int:
    """Parse the argument of go-to-question."""
    if not args:
        raise UserInputError("Usage: go-to-question <number>")
    try:
        return int(args[0])
    except ValueError:
        raise UserInputError(f"Invalid question number: {args[0]}")


def parse_player_target(mentioned_ids: List[str]) -> str:
    """
    Pick the identity named by add-player.

    Only a mention resolved by the transport counts; free text and mentions
    of bots never become players.
    """
    if not mentioned_ids:
        raise UserInputError("Mention a user to add")
    return mentioned_ids[0]
