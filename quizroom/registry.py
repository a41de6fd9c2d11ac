"""
Process-wide registry of quiz sessions and private answer routing.
"""
import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from .errors import NotFoundError, StateConflictError
from .models import QuizSettings
from .scheduler import Scheduler
from .session import QuizSession
from .transport import SafeTransport


class SessionRegistry:
    """
    Maps group identifiers to their active quiz session.

    Sessions remove themselves when they finish or are cancelled. The mapping
    is guarded by a mutex; routing works on a snapshot of it.
    """

    def __init__(
        self,
        settings: QuizSettings,
        scheduler: Scheduler,
        transport: SafeTransport,
        clock: Callable[[], float] = time.monotonic
    ):
        self.logger = logging.getLogger(__name__)
        self.settings = settings
        self.scheduler = scheduler
        self.transport = transport
        self.clock = clock
        self._sessions: Dict[str, QuizSession] = {}
        self._mutex = threading.Lock()

    def get_or_create(self, group_id: str, owner_id: str) -> QuizSession:
        """
        Return the group's session, creating an idle one owned by owner_id if none exists.
        """
        with self._mutex:
            session = self._sessions.get(group_id)
            if session is not None:
                return session
            session = QuizSession(
                group_id=group_id,
                owner_id=owner_id,
                settings=self.settings,
                scheduler=self.scheduler,
                transport=self.transport,
                clock=self.clock,
                on_closed=self._discard
            )
            self._sessions[group_id] = session

        self.logger.info(
            f"Created quiz session for group {group_id} owned by {owner_id}",
            extra={
                'event_type': 'session_created',
                'group_id': group_id,
                'owner_id': owner_id,
                'timestamp': time.time()
            }
        )
        return session

    def get(self, group_id: str) -> Optional[QuizSession]:
        with self._mutex:
            return self._sessions.get(group_id)

    def remove(self, group_id: str) -> Optional[QuizSession]:
        """Drop a group's session from the registry; returns it if one existed."""
        with self._mutex:
            session = self._sessions.pop(group_id, None)
        if session is not None:
            self.logger.info(
                f"Removed quiz session for group {group_id} ({session.state.value})",
                extra={
                    'event_type': 'session_removed',
                    'group_id': group_id,
                    'state': session.state.value,
                    'timestamp': time.time()
                }
            )
        return session

    def _discard(self, session: QuizSession) -> None:
        # Only remove the mapping if it still points at this session
        with self._mutex:
            if self._sessions.get(session.group_id) is not session:
                return
        self.remove(session.group_id)

    def sessions(self) -> List[QuizSession]:
        with self._mutex:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._mutex:
            return len(self._sessions)

    def __contains__(self, group_id: str) -> bool:
        with self._mutex:
            return group_id in self._sessions

    def find_answer_target(self, sender_id: str) -> QuizSession:
        """
        Select the session awaiting this sender's answer.

        When the sender plays in several running quizzes at once, the one whose
        current round started most recently wins.

        Raises:
            StateConflictError: If the sender already answered every open round they play in
            NotFoundError: If no open round is waiting for the sender
        """
        candidates = [s for s in self.sessions() if s.is_awaiting_answer_from(sender_id)]
        if candidates:
            return max(candidates, key=lambda s: s.round.start_time)

        if any(s.has_answered_open_round(sender_id) and sender_id in s.players for s in self.sessions()):
            raise StateConflictError("You already answered this question")
        raise NotFoundError("No active question for you")

    async def route_private_answer(self, sender_id: str, raw_text: str) -> QuizSession:
        """
        Route a private reply to the right session and record it there.

        Returns:
            The session that accepted the answer
        """
        session = self.find_answer_target(sender_id)
        await session.submit_answer(sender_id, raw_text)
        return session
