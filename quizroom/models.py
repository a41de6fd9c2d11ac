"""
Core data models for the group quiz bot.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple


class SessionState(Enum):
    """Enumeration of possible quiz session states."""
    IDLE = "idle"
    JOIN = "join"
    RUNNING = "running"
    FINISHED = "finished"
    CANCELLED = "cancelled"


@dataclass
class QuizSettings:
    """Configuration settings applied to every quiz session."""
    join_window_seconds: int = 300
    default_question_seconds: int = 20
    min_question_seconds: int = 5
    max_question_seconds: int = 300
    command_prefix: str = "!"
    owner_ids: List[str] = field(default_factory=list)


@dataclass
class Question:
    """Represents a single multiple-choice quiz question."""
    text: str
    options: List[str]
    correct_option: int
    time_limit_seconds: int

    @property
    def correct_text(self) -> str:
        return self.options[self.correct_option - 1]


@dataclass(frozen=True)
class Answer:
    """A scored answer; never changes once stored on a player."""
    chosen_option: int
    elapsed_millis: int
    points_awarded: int


@dataclass
class Player:
    """A quiz participant and their running score."""
    id: str
    display_name: str
    join_order: int
    score: int = 0
    answers: Dict[int, Answer] = field(default_factory=dict)


@dataclass
class Round:
    """Transient state of the question currently open for answers."""
    question_index: int
    start_time: float
    time_limit_millis: int
    generation: int
    answered: Set[str] = field(default_factory=set)
    # identity -> (chosen option, elapsed millis), in arrival order
    pending: Dict[str, Tuple[int, int]] = field(default_factory=dict)


# Inbound events

@dataclass
class GroupCommand:
    """A command typed into a group chat."""
    group_id: str
    sender_id: str
    is_owner_candidate: bool
    raw_text: str
    mentioned_ids: List[str] = field(default_factory=list)


@dataclass
class PrivateMessage:
    """A message received on a one-to-one channel."""
    sender_id: str
    raw_text: str


# Outbound payloads

@dataclass
class Notice:
    """A short status, acknowledgement or error notice."""
    kind: str
    text: str
    data: Dict[str, object] = field(default_factory=dict)


@dataclass
class QuestionPayload:
    """A question being broadcast to the group and to players."""
    group_id: str
    number: int
    total: int
    text: str
    options: List[str]
    time_limit_seconds: int


@dataclass
class LeaderboardEntry:
    rank: int
    player_id: str
    display_name: str
    score: int


@dataclass
class RoundEntry:
    player_id: str
    display_name: str
    chosen_option: Optional[int]
    correct: bool
    points_awarded: int
    elapsed_millis: Optional[int] = None


@dataclass
class RoundResult:
    """Structured outcome of a closed round, handed to the transport for rendering."""
    group_id: str
    question_index: int
    question: Question
    entries: List[RoundEntry]
    leaderboard: List[LeaderboardEntry]
    is_final: bool = False


@dataclass
class PlayerRoundSummary:
    """Per-player private recap of a closed round."""
    group_id: str
    question_number: int
    correct: bool
    answered: bool
    points_awarded: int
    elapsed_millis: Optional[int]
    rank: int
    total_players: int
    correct_text: str


@dataclass
class QuizProgress:
    """Snapshot of a session for status reports."""
    group_id: str
    owner_id: str
    state: SessionState
    total_questions: int
    current_question: int
    round_open: bool
    player_count: int
