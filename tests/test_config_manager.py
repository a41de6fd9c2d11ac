"""
Unit tests for ConfigManager class.
"""
import unittest
import logging
import threading

from quizroom.config_manager import ConfigManager
from quizroom.models import QuizSettings


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        """Test that ConfigManager initializes with correct default values."""
        settings = self.config_manager.get_quiz_settings()

        self.assertIsInstance(settings, QuizSettings)
        self.assertEqual(settings.join_window_seconds, 300)
        self.assertEqual(settings.default_question_seconds, 20)
        self.assertEqual(settings.min_question_seconds, 5)
        self.assertEqual(settings.max_question_seconds, 300)
        self.assertEqual(settings.command_prefix, "!")
        self.assertEqual(settings.owner_ids, [])

    def test_set_join_window_valid_values(self):
        """Test setting valid join window values."""
        for seconds in (10, 120, 3600):
            result = self.config_manager.set_join_window(seconds)
            self.assertTrue(result['success'])
            self.assertIn('✅', result['user_message'])
            self.assertEqual(self.config_manager.get_join_window(), seconds)

    def test_set_join_window_invalid_values(self):
        """Test that invalid join windows are rejected and leave the old value."""
        for value in (9, 0, -5, 3601):
            result = self.config_manager.set_join_window(value)
            self.assertFalse(result['success'])
            self.assertIn('error', result)
            self.assertIn('❌', result['user_message'])

        for value in ("60", 60.0, None, True):
            result = self.config_manager.set_join_window(value)
            self.assertFalse(result['success'])
            self.assertIn("Expected a number", result['user_message'])

        self.assertEqual(self.config_manager.get_join_window(), 300)

    def test_set_default_question_seconds(self):
        """Test the default question time respects its bounds."""
        result = self.config_manager.set_default_question_seconds(30)
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_default_question_seconds(), 30)

        result = self.config_manager.set_default_question_seconds(4)
        self.assertFalse(result['success'])
        self.assertIn("too short", result['user_message'])

        result = self.config_manager.set_default_question_seconds(301)
        self.assertFalse(result['success'])
        self.assertIn("too long", result['user_message'])

        self.assertEqual(self.config_manager.get_default_question_seconds(), 30)

    def test_set_command_prefix(self):
        """Test command prefix validation."""
        self.assertTrue(self.config_manager.set_command_prefix("?")['success'])
        self.assertEqual(self.config_manager.get_command_prefix(), "?")

        for prefix in ("! ", "toolong", 5, None):
            self.assertFalse(self.config_manager.set_command_prefix(prefix)['success'])
        self.assertEqual(self.config_manager.get_command_prefix(), "?")

    def test_set_owner_ids(self):
        """Test owner ids are normalized to strings."""
        result = self.config_manager.set_owner_ids([1234, " 5678 ", ""])
        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_owner_ids(), ["1234", "5678"])

        result = self.config_manager.set_owner_ids(42)
        self.assertFalse(result['success'])
        self.assertEqual(self.config_manager.get_owner_ids(), ["1234", "5678"])

        self.assertTrue(self.config_manager.set_owner_ids(None)['success'])
        self.assertEqual(self.config_manager.get_owner_ids(), [])

    def test_apply_config(self):
        """Test applying the quiz section of config.json."""
        errors = self.config_manager.apply_config({
            'quiz': {
                'join_window_seconds': 60,
                'default_question_seconds': 15,
                'command_prefix': "$",
                'owner_ids': [99]
            }
        })

        self.assertEqual(errors, [])
        settings = self.config_manager.get_quiz_settings()
        self.assertEqual(settings.join_window_seconds, 60)
        self.assertEqual(settings.default_question_seconds, 15)
        self.assertEqual(settings.command_prefix, "$")
        self.assertEqual(settings.owner_ids, ["99"])

    def test_apply_config_skips_invalid_values(self):
        """Test that rejected settings are reported and defaults kept."""
        errors = self.config_manager.apply_config({
            'quiz': {'join_window_seconds': 1, 'default_question_seconds': 25}
        })

        self.assertEqual(len(errors), 1)
        self.assertIn("Join window", errors[0])
        self.assertEqual(self.config_manager.get_join_window(), 300)
        self.assertEqual(self.config_manager.get_default_question_seconds(), 25)

    def test_apply_config_without_quiz_section(self):
        self.assertEqual(self.config_manager.apply_config(None), [])
        self.assertEqual(self.config_manager.apply_config({'bot': {}}), [])
        self.assertEqual(self.config_manager.apply_config({'quiz': None}), [])

    def test_empty_prefix_rejected_consistently(self):
        """Test the setter and validation agree on which prefixes are usable."""
        result = self.config_manager.set_command_prefix("")
        self.assertFalse(result['success'])
        self.assertEqual(self.config_manager.get_command_prefix(), "!")

        for prefix in ("", " ", "\t", "!!!!"):
            self.assertFalse(ConfigManager.is_valid_prefix(prefix))
            self.config_manager._global_settings.command_prefix = prefix
            self.assertFalse(self.config_manager.validate_settings()["valid"])

        for prefix in ("!", "?", "$$", "q!>"):
            self.assertTrue(self.config_manager.set_command_prefix(prefix)['success'])
            self.assertTrue(self.config_manager.validate_settings()["valid"])

    def test_validate_settings_with_defaults(self):
        """Test validation with default settings."""
        result = self.config_manager.validate_settings()

        self.assertTrue(result["valid"])
        self.assertEqual(len(result["issues"]), 0)

    def test_validate_settings_invalid_configuration(self):
        """Test validation with invalid settings."""
        # Manually corrupt settings to test validation
        self.config_manager._global_settings.join_window_seconds = 1
        self.config_manager._global_settings.default_question_seconds = 1000
        self.config_manager._global_settings.command_prefix = ""

        result = self.config_manager.validate_settings()

        self.assertFalse(result["valid"])
        self.assertEqual(len(result["issues"]), 3)
        issues_text = " ".join(result["issues"]).lower()
        self.assertIn("join window", issues_text)
        self.assertIn("question time", issues_text)
        self.assertIn("command prefix", issues_text)

    def test_get_quiz_settings_returns_copy(self):
        """Test that get_quiz_settings returns a copy, not reference."""
        settings1 = self.config_manager.get_quiz_settings()
        settings1.join_window_seconds = 999
        settings1.owner_ids.append("intruder")

        settings2 = self.config_manager.get_quiz_settings()
        self.assertEqual(settings2.join_window_seconds, 300)
        self.assertEqual(settings2.owner_ids, [])

    def test_get_settings_summary(self):
        """Test getting formatted settings summary."""
        summary = self.config_manager.get_settings_summary()

        self.assertIn("Join window: 300 seconds", summary)
        self.assertIn("Default question time: 20 seconds", summary)
        self.assertIn("Command prefix: !", summary)
        self.assertIn("server managers", summary)

        self.config_manager.set_owner_ids(["42"])
        self.config_manager.set_join_window(45)
        summary = self.config_manager.get_settings_summary()

        self.assertIn("45 seconds", summary)
        self.assertIn("Quiz owners: 42", summary)

    def test_constants_are_defined(self):
        """Test that all required constants are properly defined."""
        self.assertEqual(ConfigManager.DEFAULT_JOIN_WINDOW, 300)
        self.assertEqual(ConfigManager.DEFAULT_QUESTION_SECONDS, 20)
        self.assertEqual(ConfigManager.DEFAULT_COMMAND_PREFIX, "!")
        self.assertLess(ConfigManager.MIN_JOIN_WINDOW, ConfigManager.MAX_JOIN_WINDOW)
        self.assertLess(ConfigManager.MIN_QUESTION_SECONDS, ConfigManager.MAX_QUESTION_SECONDS)

    def test_concurrent_access_safety(self):
        """Test that concurrent setters leave a valid configuration."""
        errors = []

        def config_worker(worker_id):
            try:
                for i in range(20):
                    self.config_manager.set_join_window(10 + worker_id * 20 + i)
                    self.config_manager.get_quiz_settings()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=config_worker, args=(i,)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertTrue(self.config_manager.validate_settings()["valid"])


if __name__ == '__main__':
    unittest.main()
