"""
Quiz controller for the group quiz bot.
Dispatches inbound group commands and private answers to quiz sessions.
"""
import logging
import time
from typing import Callable, Optional

from .commands import (
    ADD_PLAYER, ADD_QUESTION, ADD_QUESTION_FORMAT, CANCEL_QUIZ, CLOSE_JOIN,
    CREATE_QUIZ, GO_TO_QUESTION, JOIN, OWNER_COMMANDS, QUIZ_STATUS, START_QUIZ,
    ParsedCommand, parse_command, parse_player_target, parse_question_fields,
    parse_question_number
)
from .config_manager import ConfigManager
from .errors import (
    NotFoundError, QuizError, QuizPermissionError, StateConflictError,
    UserInputError
)
from .models import GroupCommand, Notice, PrivateMessage
from .questions import build_question
from .registry import SessionRegistry
from .scheduler import Scheduler
from .session import QuizSession
from .transport import SafeTransport, Transport


class QuizController:
    """
    Orchestrates quiz sessions across group chats.

    Each group can have at most one quiz session at a time. Errors raised by
    sessions are reported back to whoever sent the message; nothing here is
    allowed to crash the bot.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        transport: Transport,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the quiz controller.

        Args:
            config_manager: Instance for managing configuration
            transport: Chat platform used for all outbound messages
            scheduler: Timer capability, a new Scheduler if None
            clock: Monotonic clock used for answer timing
        """
        self.logger = logging.getLogger(__name__)
        self.config_manager = config_manager
        self.settings = config_manager.get_quiz_settings()
        self.transport = SafeTransport(transport)
        self.scheduler = scheduler or Scheduler()
        self.registry = SessionRegistry(self.settings, self.scheduler, self.transport, clock)

        self.logger.info("QuizController initialized")

    # Inbound events

    async def handle_group_command(self, event: GroupCommand) -> Optional[ParsedCommand]:
        """
        Handle a message typed in a group chat.

        Returns:
            The parsed command, or None if the message was not a quiz command
        """
        command = parse_command(event.raw_text, self.settings.command_prefix)
        if command is None:
            return None

        try:
            await self._dispatch(command, event)
        except QuizError as e:
            self._log_rejection(command.name, event.group_id, event.sender_id, e)
            await self.transport.send_to_group(event.group_id, self._error_notice(e, command.name))
        except Exception as e:
            self.logger.error(
                f"Error handling {command.name} in group {event.group_id}: {e}",
                exc_info=True
            )
            await self.transport.send_to_group(
                event.group_id, self._error_notice(e, command.name)
            )
        return command

    async def handle_private_message(self, event: PrivateMessage) -> Optional[QuizSession]:
        """
        Handle a private reply as an answer to the sender's open question.

        Returns:
            The session that accepted the answer, None if it was rejected
        """
        if not (event.raw_text or "").strip():
            return None

        try:
            return await self.registry.route_private_answer(event.sender_id, event.raw_text)
        except QuizError as e:
            self._log_rejection("answer", None, event.sender_id, e)
            await self.transport.send_to_private(event.sender_id, self._error_notice(e, "answer"))
        except Exception as e:
            self.logger.error(f"Error handling private answer from {event.sender_id}: {e}", exc_info=True)
            await self.transport.send_to_private(event.sender_id, self._error_notice(e, "answer"))
        return None

    async def _dispatch(self, command: ParsedCommand, event: GroupCommand) -> None:
        if command.name == CREATE_QUIZ:
            await self.create_quiz(event)
            return

        session = self.registry.get(event.group_id)
        if session is None:
            raise NotFoundError(f"No quiz in this group. Use {self.settings.command_prefix}{CREATE_QUIZ} first.")

        if command.name in OWNER_COMMANDS and event.sender_id != session.owner_id:
            raise QuizPermissionError("Only the quiz owner can do that")

        if command.name == ADD_QUESTION:
            fields = parse_question_fields(command.args)
            question = build_question(settings=self.settings, **fields)
            await session.add_question(event.sender_id, question)
        elif command.name == START_QUIZ:
            await session.start_quiz(event.sender_id)
        elif command.name == CLOSE_JOIN:
            await session.close_join(event.sender_id)
        elif command.name == GO_TO_QUESTION:
            await session.go_to_question(event.sender_id, parse_question_number(command.args))
        elif command.name == ADD_PLAYER:
            identity = parse_player_target(event.mentioned_ids)
            display_name = await self.transport.resolve_display_name(identity)
            await session.add_player(event.sender_id, identity, display_name)
        elif command.name == CANCEL_QUIZ:
            await session.cancel(event.sender_id)
        elif command.name == JOIN:
            display_name = await self.transport.resolve_display_name(event.sender_id)
            await session.join(event.sender_id, display_name)
        elif command.name == QUIZ_STATUS:
            await self.transport.send_to_group(event.group_id, session.progress())
        else:
            raise UserInputError(f"Unknown command: {command.name}")

    async def create_quiz(self, event: GroupCommand) -> QuizSession:
        """
        Create an idle quiz in the group owned by the sender.

        Raises:
            QuizPermissionError: If the sender may not own quizzes
            StateConflictError: If the group already has a quiz
        """
        if not (event.is_owner_candidate or event.sender_id in self.settings.owner_ids):
            raise QuizPermissionError("You are not allowed to create quizzes here")

        existing = self.registry.get(event.group_id)
        if existing is not None:
            raise StateConflictError(
                f"A quiz already exists in this group ({existing.state.value}). "
                f"Cancel it first with {self.settings.command_prefix}{CANCEL_QUIZ}."
            )

        session = self.registry.get_or_create(event.group_id, event.sender_id)
        await self.transport.send_to_group(event.group_id, Notice(
            "quiz_created",
            f"New quiz created! Use {self.settings.command_prefix}{ADD_QUESTION_FORMAT}",
            {'owner_id': event.sender_id}
        ))
        return session

    async def shutdown(self) -> None:
        """Cancel every running quiz and pending timer."""
        for session in self.registry.sessions():
            try:
                await session.cancel(session.owner_id)
            except QuizError as e:
                self.logger.warning(f"Could not cancel session {session.group_id} on shutdown: {e}")
        cancelled = self.scheduler.cancel_all()
        self.logger.info(f"QuizController shut down, {cancelled} timers cancelled")

    # Error reporting

    def _error_notice(self, error: Exception, operation: str) -> Notice:
        kind = error.notice_kind if isinstance(error, QuizError) else "error"
        return Notice(kind, self._get_user_friendly_error_message(error, operation), {
            'error_type': type(error).__name__,
            'operation': operation
        })

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        """
        Generate user-friendly error messages.

        Args:
            error: The exception that occurred
            operation: Command or action that failed

        Returns:
            User-friendly error message
        """
        if isinstance(error, UserInputError):
            return f"⚠️ {error}"
        elif isinstance(error, QuizPermissionError):
            return f"⛔ {error}"
        elif isinstance(error, StateConflictError):
            return f"⏱️ {error}"
        elif isinstance(error, NotFoundError):
            return f"ℹ️ {error}"
        else:
            return f"❌ An unexpected error occurred during {operation}. Please try again."

    def _log_rejection(self, operation: str, group_id: Optional[str], sender_id: str, error: QuizError) -> None:
        self.logger.info(
            f"Rejected {operation} from {sender_id}: {type(error).__name__}: {error}",
            extra={
                'event_type': 'command_rejected',
                'operation': operation,
                'group_id': group_id,
                'sender_id': sender_id,
                'error_type': type(error).__name__,
                'timestamp': time.time()
            }
        )
