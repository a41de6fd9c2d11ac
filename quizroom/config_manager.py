"""
Configuration manager for quiz bot settings and parameters.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from .models import QuizSettings


class ConfigManager:
    """Manages bot configuration settings and quiz parameters."""

    # Default configuration values
    DEFAULT_JOIN_WINDOW = 300  # 5 minutes
    DEFAULT_QUESTION_SECONDS = 20
    DEFAULT_COMMAND_PREFIX = "!"

    # Validation limits
    MIN_JOIN_WINDOW = 10
    MAX_JOIN_WINDOW = 3600
    MIN_QUESTION_SECONDS = 5
    MAX_QUESTION_SECONDS = 300  # 5 minutes
    MAX_PREFIX_LENGTH = 3

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = self._default_settings()

    def _default_settings(self) -> QuizSettings:
        return QuizSettings(
            join_window_seconds=self.DEFAULT_JOIN_WINDOW,
            default_question_seconds=self.DEFAULT_QUESTION_SECONDS,
            min_question_seconds=self.MIN_QUESTION_SECONDS,
            max_question_seconds=self.MAX_QUESTION_SECONDS,
            command_prefix=self.DEFAULT_COMMAND_PREFIX,
            owner_ids=[]
        )

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get current quiz settings.

        Returns:
            Copy of the current QuizSettings
        """
        settings = self._global_settings
        return QuizSettings(
            join_window_seconds=settings.join_window_seconds,
            default_question_seconds=settings.default_question_seconds,
            min_question_seconds=settings.min_question_seconds,
            max_question_seconds=settings.max_question_seconds,
            command_prefix=settings.command_prefix,
            owner_ids=list(settings.owner_ids)
        )

    def _set_int(self, name: str, value: Any, minimum: int, maximum: int, label: str) -> Dict[str, Any]:
        # bool is an int subclass but never a valid duration
        if not isinstance(value, int) or isinstance(value, bool):
            error_msg = f"{label} must be an integer, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            }

        if value < minimum:
            error_msg = f"{label} must be at least {minimum} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} too short: Minimum is {minimum} seconds"
            }

        if value > maximum:
            error_msg = f"{label} cannot exceed {maximum} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} too long: Maximum is {maximum} seconds"
            }

        setattr(self._global_settings, name, value)
        self.logger.info(f"{label} set to {value} seconds")
        return {
            'success': True,
            'message': f"{label} set to {value} seconds",
            'user_message': f"✅ {label} set to {value} seconds"
        }

    def set_join_window(self, seconds: int) -> Dict[str, Any]:
        """
        Set how long the join phase stays open.

        Args:
            seconds: Join window length in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        return self._set_int(
            'join_window_seconds', seconds,
            self.MIN_JOIN_WINDOW, self.MAX_JOIN_WINDOW, "Join window"
        )

    def get_join_window(self) -> int:
        return self._global_settings.join_window_seconds

    def set_default_question_seconds(self, seconds: int) -> Dict[str, Any]:
        """
        Set the time limit used when a question does not specify a valid one.

        Args:
            seconds: Default time limit in seconds

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        return self._set_int(
            'default_question_seconds', seconds,
            self.MIN_QUESTION_SECONDS, self.MAX_QUESTION_SECONDS, "Question time"
        )

    def get_default_question_seconds(self) -> int:
        return self._global_settings.default_question_seconds

    @classmethod
    def is_valid_prefix(cls, prefix: Any) -> bool:
        """A prefix is 1 to MAX_PREFIX_LENGTH characters with no whitespace."""
        return (
            isinstance(prefix, str)
            and 0 < len(prefix) <= cls.MAX_PREFIX_LENGTH
            and not any(char.isspace() for char in prefix)
        )

    def set_command_prefix(self, prefix: str) -> Dict[str, Any]:
        """Set the prefix that marks group messages as quiz commands."""
        if not self.is_valid_prefix(prefix):
            error_msg = f"Invalid command prefix: {prefix!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Command prefix must be 1 to {self.MAX_PREFIX_LENGTH} characters without spaces"
            }

        self._global_settings.command_prefix = prefix
        self.logger.info(f"Command prefix set to {prefix!r}")
        return {
            'success': True,
            'message': f"Command prefix set to {prefix!r}",
            'user_message': f"✅ Commands now start with `{prefix}`"
        }

    def get_command_prefix(self) -> str:
        return self._global_settings.command_prefix

    def set_owner_ids(self, owner_ids: Optional[Iterable[Any]]) -> Dict[str, Any]:
        """Set identities that may always create quizzes."""
        try:
            ids = [str(owner_id).strip() for owner_id in (owner_ids or []) if str(owner_id).strip()]
        except TypeError:
            error_msg = f"Owner ids must be a list, got {type(owner_ids).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Owner ids must be a list"
            }

        self._global_settings.owner_ids = ids
        self.logger.info(f"{len(ids)} quiz owner ids configured")
        return {
            'success': True,
            'message': f"{len(ids)} owner ids configured",
            'user_message': f"✅ {len(ids)} quiz owners configured"
        }

    def get_owner_ids(self) -> List[str]:
        return list(self._global_settings.owner_ids)

    def apply_config(self, config: Optional[Dict[str, Any]]) -> List[str]:
        """
        Apply the `quiz` section of a loaded config.json.

        Invalid values are logged and skipped so the defaults stay in effect.

        Returns:
            List of error messages for settings that were rejected
        """
        quiz_config = (config or {}).get('quiz', {}) or {}
        errors = []

        setters = [
            ('join_window_seconds', self.set_join_window),
            ('default_question_seconds', self.set_default_question_seconds),
            ('command_prefix', self.set_command_prefix),
            ('owner_ids', self.set_owner_ids),
        ]
        for key, setter in setters:
            if key not in quiz_config:
                continue
            result = setter(quiz_config[key])
            if not result['success']:
                errors.append(result['error'])

        if errors:
            self.logger.warning(f"Configuration applied with {len(errors)} rejected settings")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        settings = self._global_settings

        if not self.MIN_JOIN_WINDOW <= settings.join_window_seconds <= self.MAX_JOIN_WINDOW:
            validation_result["valid"] = False
            validation_result["issues"].append(
                f"Invalid join window: {settings.join_window_seconds}"
            )

        if not settings.min_question_seconds <= settings.default_question_seconds <= settings.max_question_seconds:
            validation_result["valid"] = False
            validation_result["issues"].append(
                f"Invalid question time: {settings.default_question_seconds}"
            )

        if not self.is_valid_prefix(settings.command_prefix):
            validation_result["valid"] = False
            validation_result["issues"].append(
                f"Invalid command prefix: {settings.command_prefix!r}"
            )

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._global_settings
        owners = ", ".join(settings.owner_ids) if settings.owner_ids else "server managers"
        return (
            f"Quiz Settings:\n"
            f"• Join window: {settings.join_window_seconds} seconds\n"
            f"• Default question time: {settings.default_question_seconds} seconds\n"
            f"• Question time range: {settings.min_question_seconds}-{settings.max_question_seconds} seconds\n"
            f"• Command prefix: {settings.command_prefix}\n"
            f"• Quiz owners: {owners}"
        )
