"""
Unit tests for question parsing, the question bank, the player registry and command parsing.
"""
import unittest

from quizroom.commands import (
    ADD_PLAYER, ADD_QUESTION, GO_TO_QUESTION, JOIN, parse_command,
    parse_player_target, parse_question_fields, parse_question_number
)
from quizroom.errors import StateConflictError, UserInputError
from quizroom.players import PlayerRegistry, normalize_identity
from quizroom.questions import QuestionBank, build_question, parse_time_limit
from tests.test_fixtures import TestFixtures


class TestBuildQuestion(unittest.TestCase):

    def setUp(self):
        self.settings = TestFixtures.create_settings()

    def test_valid_question(self):
        question = build_question("Capital of France?", ["London", " Paris ", "Rome"], "2", "15", self.settings)
        self.assertEqual(question.text, "Capital of France?")
        self.assertEqual(question.options, ["London", "Paris", "Rome"])
        self.assertEqual(question.correct_option, 2)
        self.assertEqual(question.time_limit_seconds, 15)
        self.assertEqual(question.correct_text, "Paris")

    def test_empty_text_rejected(self):
        with self.assertRaises(UserInputError):
            build_question("   ", ["a", "b"], "1", None, self.settings)

    def test_too_few_options_rejected(self):
        with self.assertRaises(UserInputError):
            build_question("Q?", ["only"], "1", None, self.settings)
        with self.assertRaises(UserInputError):
            build_question("Q?", ["a", "  "], "1", None, self.settings)

    def test_correct_option_out_of_range(self):
        for raw in ("0", "4", "-1", "x", ""):
            with self.assertRaises(UserInputError):
                build_question("Q?", ["a", "b", "c"], raw, None, self.settings)


class TestParseTimeLimit(unittest.TestCase):

    def setUp(self):
        self.settings = TestFixtures.create_settings()

    def test_missing_uses_default(self):
        self.assertEqual(parse_time_limit(None, self.settings), 20)
        self.assertEqual(parse_time_limit("", self.settings), 20)
        self.assertEqual(parse_time_limit("soon", self.settings), 20)

    def test_non_positive_uses_default(self):
        self.assertEqual(parse_time_limit("0", self.settings), 20)
        self.assertEqual(parse_time_limit("-30", self.settings), 20)

    def test_clamped_to_bounds(self):
        self.assertEqual(parse_time_limit("1", self.settings), 5)
        self.assertEqual(parse_time_limit("9999", self.settings), 300)
        self.assertEqual(parse_time_limit(" 45 ", self.settings), 45)


class TestQuestionBank(unittest.TestCase):

    def test_add_returns_number(self):
        bank = QuestionBank()
        self.assertEqual(bank.add(TestFixtures.create_question()), 1)
        self.assertEqual(bank.add(TestFixtures.create_question("Q2?")), 2)
        self.assertEqual(len(bank), 2)
        self.assertEqual(bank.get(1).text, "Q2?")
        self.assertTrue(bank.is_last(1))
        self.assertFalse(bank.is_last(0))

    def test_frozen_bank_rejects_additions(self):
        bank = QuestionBank()
        bank.add(TestFixtures.create_question())
        bank.freeze()
        self.assertTrue(bank.is_frozen)
        with self.assertRaises(StateConflictError):
            bank.add(TestFixtures.create_question())
        self.assertEqual(len(bank), 1)


class TestPlayerRegistry(unittest.TestCase):

    def test_add_is_idempotent(self):
        players = PlayerRegistry()
        self.assertTrue(players.add("p1", "Alice"))
        self.assertFalse(players.add("p1", "Someone else"))
        self.assertEqual(len(players), 1)
        self.assertEqual(players.get("p1").display_name, "Alice")

    def test_join_order(self):
        players = PlayerRegistry()
        for identity in ("c", "a", "b"):
            players.add(identity)
        players.add("a")
        self.assertEqual(players.ids(), ["c", "a", "b"])
        self.assertEqual([p.join_order for p in players.in_join_order()], [0, 1, 2])

    def test_normalize_identity(self):
        self.assertEqual(normalize_identity("447700900123@c.us"), "447700900123")
        self.assertEqual(normalize_identity("+15551234"), "15551234")
        self.assertEqual(normalize_identity("plain"), "plain")
        self.assertEqual(normalize_identity("@weird"), "@weird")


class TestCommandParsing(unittest.TestCase):

    def test_add_question_uses_pipes(self):
        command = parse_command("!add-question|What is 2+2?|3,4,5|2|10", "!")
        self.assertEqual(command.name, ADD_QUESTION)
        self.assertEqual(command.args, ["What is 2+2?", "3,4,5", "2", "10"])

        fields = parse_question_fields(command.args)
        self.assertEqual(fields['options'], ["3", "4", "5"])
        self.assertEqual(fields['time_limit'], "10")

    def test_add_question_without_time(self):
        fields = parse_question_fields(["Q?", "a,b", "1"])
        self.assertIsNone(fields['time_limit'])

    def test_add_question_missing_fields(self):
        with self.assertRaises(UserInputError):
            parse_question_fields(["Q?", "a,b"])

    def test_whitespace_commands(self):
        command = parse_command("!Go-To-Question 3", "!")
        self.assertEqual(command.name, GO_TO_QUESTION)
        self.assertEqual(parse_question_number(command.args), 3)
        self.assertEqual(parse_command("!join", "!").name, JOIN)

    def test_prefix_required(self):
        self.assertIsNone(parse_command("join", "!"))
        self.assertEqual(parse_command("join").name, JOIN)

    def test_unknown_commands_ignored(self):
        self.assertIsNone(parse_command("!dance", "!"))
        self.assertIsNone(parse_command("!start-quiz|x", "!"))
        self.assertIsNone(parse_command("!", "!"))
        self.assertIsNone(parse_command("", "!"))

    def test_question_number_errors(self):
        with self.assertRaises(UserInputError):
            parse_question_number([])
        with self.assertRaises(UserInputError):
            parse_question_number(["two"])

    def test_player_target(self):
        self.assertEqual(parse_player_target(["42", "43"]), "42")
        with self.assertRaises(UserInputError):
            parse_player_target([])
        self.assertEqual(parse_command("!add-player @bob", "!").name, ADD_PLAYER)


if __name__ == '__main__':
    unittest.main()
