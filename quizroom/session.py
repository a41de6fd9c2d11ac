"""
Quiz session state machine.
Manages the join window, timed question rounds, answer collection and scoring for one group.
"""
import asyncio
import logging
import time
from typing import Callable, List, Optional

from .errors import (
    NotFoundError, QuizPermissionError, StateConflictError, UserInputError
)
from .models import (
    Notice, PlayerRoundSummary, QuestionPayload, Question, QuizProgress,
    QuizSettings, Round, RoundResult, SessionState
)
from .players import PlayerRegistry
from .questions import QuestionBank
from .scheduler import Scheduler, TimerLifecycleLogger
from .scoring import leaderboard, score_round
from .transport import Delivery, SafeTransport

ACTIVE_STATES = (SessionState.IDLE, SessionState.JOIN, SessionState.RUNNING)

JOIN_TIMER = "join"
ROUND_TIMER = "round"


def parse_option(raw_text: str, option_count: int) -> int:
    """
    Parse a private reply into a 1-based option number.

    Raises:
        UserInputError: If the reply is not a whole number within range
    """
    text = (raw_text or "").strip()
    try:
        chosen = int(text)
    except ValueError:
        raise UserInputError(f"Please reply with a number between 1 and {option_count}")
    if not 1 <= chosen <= option_count:
        raise UserInputError(f"Option {chosen} does not exist, choose between 1 and {option_count}")
    return chosen


class QuizSession:
    """
    One quiz's lifecycle in one group.

    Every transition, whether triggered by a command, a private answer or a
    timer, runs under the session lock. Outbound messages are queued while the
    lock is held and delivered once it is released.
    """

    def __init__(
        self,
        group_id: str,
        owner_id: str,
        settings: QuizSettings,
        scheduler: Scheduler,
        transport: SafeTransport,
        clock: Callable[[], float] = time.monotonic,
        on_closed: Optional[Callable[['QuizSession'], None]] = None
    ):
        """
        Initialize an idle session.

        Args:
            group_id: Group chat that owns the quiz
            owner_id: Identity allowed to issue control commands
            settings: Quiz settings (join window, time limits)
            scheduler: Timer capability for join and round expiry
            transport: Delivery wrapper for outbound payloads
            clock: Monotonic clock in seconds
            on_closed: Called once when the session finishes or is cancelled
        """
        self.logger = logging.getLogger(__name__)
        self.group_id = group_id
        self.owner_id = owner_id
        self.settings = settings
        self.scheduler = scheduler
        self.transport = transport
        self.clock = clock
        self.on_closed = on_closed

        self.questions = QuestionBank()
        self.players = PlayerRegistry()
        self.state = SessionState.IDLE
        self.current_question_index = -1
        self.round: Optional[Round] = None

        self._lock = asyncio.Lock()
        self._generation = 0
        self._restricted = False

    # Guards

    def _require_owner(self, sender_id: str) -> None:
        if sender_id != self.owner_id:
            raise QuizPermissionError("Only the quiz owner can do that")

    def _require_active(self) -> None:
        if self.state not in ACTIVE_STATES:
            raise StateConflictError(f"The quiz is already {self.state.value}")

    def _advance_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int, expected: SessionState, timer_name: str) -> bool:
        if generation != self._generation or self.state != expected:
            TimerLifecycleLogger.log_stale_fire(
                self.group_id,
                timer_name,
                f"generation {generation} vs {self._generation}, state {self.state.value}"
            )
            return False
        return True

    # Read-only views

    def is_awaiting_answer_from(self, identity: str) -> bool:
        """True if a round is open and this player has not answered it yet."""
        round_ = self.round
        return (
            self.state == SessionState.RUNNING
            and round_ is not None
            and identity in self.players
            and identity not in round_.answered
        )

    def has_answered_open_round(self, identity: str) -> bool:
        round_ = self.round
        return round_ is not None and identity in round_.answered

    def progress(self) -> QuizProgress:
        return QuizProgress(
            group_id=self.group_id,
            owner_id=self.owner_id,
            state=self.state,
            total_questions=len(self.questions),
            current_question=self.current_question_index + 1,
            round_open=self.round is not None,
            player_count=len(self.players)
        )

    # Setup

    async def add_question(self, sender_id: str, question: Question) -> int:
        """
        Append a question while the quiz is idle.

        Returns:
            1-based number of the new question
        """
        deliveries: List[Delivery] = []
        async with self._lock:
            self._require_owner(sender_id)
            if self.state != SessionState.IDLE:
                raise StateConflictError("Questions can only be added before the quiz starts")
            number = self.questions.add(question)
            deliveries.append(Delivery("group", self.group_id, Notice(
                "question_added",
                f"Question {number} added ({question.time_limit_seconds}s).",
                {'number': number, 'time_limit_seconds': question.time_limit_seconds}
            )))
        await self.transport.deliver(deliveries)
        return number

    async def start_quiz(self, sender_id: str) -> None:
        """Open the join window and lock the room."""
        deliveries: List[Delivery] = []
        async with self._lock:
            self._require_owner(sender_id)
            if self.state != SessionState.IDLE:
                raise StateConflictError("The quiz has already been started")
            if not len(self.questions):
                raise StateConflictError("Add at least one question before starting the quiz")

            self.questions.freeze()
            self.state = SessionState.JOIN
            generation = self._advance_generation()
            window = self.settings.join_window_seconds
            self.scheduler.schedule(
                self.group_id, JOIN_TIMER, window,
                lambda: self._on_join_expired(generation)
            )
            self._restricted = True
            deliveries.append(Delivery("restrict", self.group_id, True))
            deliveries.append(Delivery("group", self.group_id, Notice(
                "join_open",
                f"Quiz starting! Type join to participate ({window}s).",
                {'join_window_seconds': window, 'question_count': len(self.questions)}
            )))
            self._log_transition(SessionState.IDLE, SessionState.JOIN, "start-quiz")
        await self.transport.deliver(deliveries)

    # Join phase

    async def join(self, identity: str, display_name: Optional[str] = None) -> bool:
        """
        Register a participant during the join phase.

        Returns:
            True if newly joined, False if the identity had already joined
        """
        deliveries: List[Delivery] = []
        async with self._lock:
            if self.state != SessionState.JOIN:
                raise StateConflictError("Joining is not open right now")
            added = self.players.add(identity, display_name)
            player = self.players.get(identity)
            if added:
                notice = Notice("joined", f"{player.display_name} joined!",
                                {'player_id': identity, 'player_count': len(self.players)})
            else:
                notice = Notice("already_joined", f"{player.display_name} has already joined.",
                                {'player_id': identity})
            deliveries.append(Delivery("group", self.group_id, notice))
        await self.transport.deliver(deliveries)
        return added

    async def add_player(self, sender_id: str, identity: str, display_name: Optional[str] = None) -> bool:
        """Owner adds a participant; allowed in any active phase."""
        deliveries: List[Delivery] = []
        async with self._lock:
            self._require_owner(sender_id)
            self._require_active()
            added = self.players.add(identity, display_name)
            player = self.players.get(identity)
            kind = "player_added" if added else "already_joined"
            text = (f"Added {player.display_name} to the quiz." if added
                    else f"{player.display_name} is already in the quiz.")
            deliveries.append(Delivery("group", self.group_id, Notice(kind, text, {'player_id': identity})))
        await self.transport.deliver(deliveries)
        return added

    async def close_join(self, sender_id: str) -> None:
        """Owner closes the join window early."""
        deliveries: List[Delivery] = []
        async with self._lock:
            self._require_owner(sender_id)
            if self.state != SessionState.JOIN:
                raise StateConflictError("The join phase is not active")
            self.scheduler.cancel(self.group_id, JOIN_TIMER, reason="join closed by owner")
            self._enter_running(deliveries, "close-join")
        await self.transport.deliver(deliveries)

    async def _on_join_expired(self, generation: int) -> None:
        deliveries: List[Delivery] = []
        async with self._lock:
            if not self._is_current(generation, SessionState.JOIN, JOIN_TIMER):
                return
            if not len(self.players):
                deliveries.append(Delivery("group", self.group_id, Notice(
                    "quiz_cancelled", "No players joined. Quiz cancelled.", {'reason': 'no_players'}
                )))
                self._terminate(SessionState.CANCELLED, deliveries, "join window expired with no players")
            else:
                self._enter_running(deliveries, "join window expired")
        await self.transport.deliver(deliveries)

    def _enter_running(self, deliveries: List[Delivery], reason: str) -> None:
        self.state = SessionState.RUNNING
        self._advance_generation()
        deliveries.append(Delivery("group", self.group_id, Notice(
            "join_closed",
            f"Joining closed. {len(self.players)} players joined.",
            {'player_count': len(self.players)}
        )))
        self._log_transition(SessionState.JOIN, SessionState.RUNNING, reason)

    # Running phase

    async def go_to_question(self, sender_id: str, number: int) -> QuestionPayload:
        """
        Open the round for question `number` (1-based).

        Raises:
            StateConflictError: If the quiz is not running or a round is still open
            UserInputError: If the number is out of range or was already asked
        """
        deliveries: List[Delivery] = []
        async with self._lock:
            self._require_owner(sender_id)
            if self.state != SessionState.RUNNING:
                raise StateConflictError("Questions can only be asked while the quiz is running")
            if self.round is not None:
                raise StateConflictError(
                    f"Question {self.round.question_index + 1} is still open, wait for it to close"
                )
            index = number - 1
            if not 0 <= index < len(self.questions):
                raise UserInputError(f"Invalid question, choose between 1 and {len(self.questions)}")
            if index <= self.current_question_index:
                raise UserInputError(f"Question {number} cannot be asked now, the quiz is past it")

            question = self.questions.get(index)
            generation = self._advance_generation()
            self.current_question_index = index
            self.round = Round(
                question_index=index,
                start_time=self.clock(),
                time_limit_millis=question.time_limit_seconds * 1000,
                generation=generation
            )
            self.scheduler.schedule(
                self.group_id, ROUND_TIMER, question.time_limit_seconds,
                lambda: self._on_round_expired(generation)
            )

            payload = QuestionPayload(
                group_id=self.group_id,
                number=number,
                total=len(self.questions),
                text=question.text,
                options=list(question.options),
                time_limit_seconds=question.time_limit_seconds
            )
            deliveries.append(Delivery("group", self.group_id, payload))
            for player_id in self.players.ids():
                deliveries.append(Delivery("private", player_id, payload))

            self.logger.info(
                f"Opened question {number}/{len(self.questions)} for group {self.group_id}",
                extra={
                    'event_type': 'round_opened',
                    'group_id': self.group_id,
                    'question_index': index,
                    'time_limit_seconds': question.time_limit_seconds,
                    'timestamp': time.time()
                }
            )
        await self.transport.deliver(deliveries)
        return payload

    async def submit_answer(self, identity: str, raw_text: str) -> int:
        """
        Record a private answer for the open round. The first valid answer wins.

        Returns:
            Elapsed milliseconds since the round opened

        Raises:
            NotFoundError: If no round is awaiting this player's answer
            StateConflictError: If the player already answered this round
            UserInputError: If the reply is not a valid option (the player may retry)
        """
        deliveries: List[Delivery] = []
        async with self._lock:
            round_ = self.round
            if self.state != SessionState.RUNNING or round_ is None or identity not in self.players:
                raise NotFoundError("No active question for you")
            if identity in round_.answered:
                raise StateConflictError("You already answered this question")

            question = self.questions.get(round_.question_index)
            chosen = parse_option(raw_text, len(question.options))
            elapsed = max(0, int(round((self.clock() - round_.start_time) * 1000)))
            round_.answered.add(identity)
            round_.pending[identity] = (chosen, elapsed)

            deliveries.append(Delivery("private", identity, Notice(
                "answer_received", "Answer received!",
                {'question_number': round_.question_index + 1, 'chosen_option': chosen}
            )))
            self.logger.debug(
                f"Answer {chosen} from {identity} in group {self.group_id} after {elapsed}ms",
                extra={
                    'event_type': 'answer_recorded',
                    'group_id': self.group_id,
                    'player_id': identity,
                    'elapsed_millis': elapsed,
                    'timestamp': time.time()
                }
            )
        await self.transport.deliver(deliveries)
        return elapsed

    async def _on_round_expired(self, generation: int) -> None:
        deliveries: List[Delivery] = []
        async with self._lock:
            if not self._is_current(generation, SessionState.RUNNING, ROUND_TIMER):
                return
            if self.round is None or self.round.generation != generation:
                TimerLifecycleLogger.log_stale_fire(self.group_id, ROUND_TIMER, "no matching open round")
                return
            self._close_round(deliveries)
        await self.transport.deliver(deliveries)

    def _close_round(self, deliveries: List[Delivery]) -> RoundResult:
        round_ = self.round
        question = self.questions.get(round_.question_index)
        entries = score_round(round_, question, self.players)
        board = leaderboard(self.players.in_join_order())
        is_final = self.questions.is_last(round_.question_index)

        result = RoundResult(
            group_id=self.group_id,
            question_index=round_.question_index,
            question=question,
            entries=entries,
            leaderboard=board,
            is_final=is_final
        )
        self.round = None
        self._advance_generation()
        deliveries.append(Delivery("group", self.group_id, result))

        ranks = {entry.player_id: entry.rank for entry in board}
        for entry in entries:
            deliveries.append(Delivery("private", entry.player_id, PlayerRoundSummary(
                group_id=self.group_id,
                question_number=round_.question_index + 1,
                correct=entry.correct,
                answered=entry.chosen_option is not None,
                points_awarded=entry.points_awarded,
                elapsed_millis=entry.elapsed_millis,
                rank=ranks.get(entry.player_id, 0),
                total_players=len(board),
                correct_text=question.correct_text
            )))

        self.logger.info(
            f"Closed question {round_.question_index + 1} for group {self.group_id}: "
            f"{len(round_.pending)} answers",
            extra={
                'event_type': 'round_closed',
                'group_id': self.group_id,
                'question_index': round_.question_index,
                'answer_count': len(round_.pending),
                'timestamp': time.time()
            }
        )

        if is_final:
            deliveries.append(Delivery("group", self.group_id, Notice(
                "quiz_finished", "Quiz finished! Group unlocked.",
                {'winner': board[0].player_id if board else None}
            )))
            self._terminate(SessionState.FINISHED, deliveries, "last question closed")
        return result

    # Termination

    async def cancel(self, sender_id: str) -> None:
        """Owner cancels the quiz in any active phase."""
        deliveries: List[Delivery] = []
        async with self._lock:
            self._require_owner(sender_id)
            self._require_active()
            deliveries.append(Delivery("group", self.group_id, Notice(
                "quiz_cancelled", "Quiz cancelled. Group unlocked.", {'reason': 'owner'}
            )))
            self._terminate(SessionState.CANCELLED, deliveries, "cancel-quiz")
        await self.transport.deliver(deliveries)

    def _terminate(self, state: SessionState, deliveries: List[Delivery], reason: str) -> None:
        previous = self.state
        self.state = state
        self.round = None
        self._advance_generation()
        self.scheduler.cancel(self.group_id, reason=reason)
        if self._restricted:
            self._restricted = False
            deliveries.append(Delivery("restrict", self.group_id, False))
        self._log_transition(previous, state, reason)
        if self.on_closed is not None:
            self.on_closed(self)

    def _log_transition(self, from_state: SessionState, to_state: SessionState, reason: str) -> None:
        self.logger.info(
            f"Session {self.group_id}: {from_state.value} -> {to_state.value} ({reason})",
            extra={
                'event_type': 'session_transition',
                'group_id': self.group_id,
                'from_state': from_state.value,
                'to_state': to_state.value,
                'reason': reason,
                'timestamp': time.time()
            }
        )
