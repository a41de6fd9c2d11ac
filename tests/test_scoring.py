"""
Unit tests for scoring and leaderboard ordering.
"""
import unittest

from quizroom.models import Player, Round
from quizroom.players import PlayerRegistry
from quizroom.scoring import BASE_POINTS, compute_points, leaderboard, score_round
from tests.test_fixtures import TestFixtures


class TestComputePoints(unittest.TestCase):

    def test_instant_correct_answer_earns_full_points(self):
        self.assertEqual(compute_points(True, 0, 10000), BASE_POINTS)

    def test_three_seconds_into_ten(self):
        self.assertEqual(compute_points(True, 3000, 10000), 85)

    def test_answer_at_or_after_limit_earns_half(self):
        self.assertEqual(compute_points(True, 10000, 10000), 50)
        self.assertEqual(compute_points(True, 25000, 10000), 50)

    def test_rounds_up(self):
        self.assertEqual(compute_points(True, 1, 10000), 100)
        self.assertEqual(compute_points(True, 9999, 10000), 51)
        self.assertEqual(compute_points(True, 1000, 3000), 84)

    def test_wrong_answer_earns_nothing(self):
        self.assertEqual(compute_points(False, 0, 10000), 0)
        self.assertEqual(compute_points(False, 5000, 10000), 0)

    def test_points_within_bounds(self):
        for limit in (5000, 10000, 20000, 300000):
            for elapsed in range(0, limit + 2000, limit // 10):
                points = compute_points(True, elapsed, limit)
                self.assertGreaterEqual(points, 50)
                self.assertLessEqual(points, 100)

    def test_faster_never_scores_less(self):
        previous = BASE_POINTS
        for elapsed in range(0, 20001, 250):
            points = compute_points(True, elapsed, 20000)
            self.assertLessEqual(points, previous)
            previous = points

    def test_negative_elapsed_treated_as_instant(self):
        self.assertEqual(compute_points(True, -50, 10000), 100)


class TestLeaderboard(unittest.TestCase):

    def test_sorted_by_score_descending(self):
        players = [
            Player("a", "A", 0, score=50),
            Player("b", "B", 1, score=185),
            Player("c", "C", 2, score=90),
        ]
        board = leaderboard(players)
        self.assertEqual([e.player_id for e in board], ["b", "c", "a"])
        self.assertEqual([e.rank for e in board], [1, 2, 3])

    def test_ties_broken_by_join_order(self):
        players = [
            Player("late", "Late", 2, score=100),
            Player("early", "Early", 0, score=100),
            Player("middle", "Middle", 1, score=100),
        ]
        board = leaderboard(players)
        self.assertEqual([e.player_id for e in board], ["early", "middle", "late"])

    def test_stable_across_calls(self):
        players = [Player(str(i), str(i), i, score=i % 3 * 10) for i in range(10)]
        first = [e.player_id for e in leaderboard(players)]
        second = [e.player_id for e in leaderboard(reversed(players))]
        self.assertEqual(first, second)

    def test_empty(self):
        self.assertEqual(leaderboard([]), [])


class TestScoreRound(unittest.TestCase):

    def setUp(self):
        self.players = PlayerRegistry()
        for identity in ("p1", "p2", "p3"):
            self.players.add(identity)
        self.question = TestFixtures.create_question()
        self.round = Round(question_index=0, start_time=0.0, time_limit_millis=10000, generation=3)

    def test_entries_in_arrival_order_then_missing_players(self):
        self.round.pending["p3"] = (2, 1000)
        self.round.pending["p1"] = (1, 2000)

        entries = score_round(self.round, self.question, self.players)

        self.assertEqual([e.player_id for e in entries], ["p3", "p1", "p2"])
        self.assertEqual([e.points_awarded for e in entries], [95, 0, 0])
        self.assertIsNone(entries[2].chosen_option)

    def test_points_added_to_players(self):
        self.round.pending["p1"] = (2, 3000)
        score_round(self.round, self.question, self.players)

        player = self.players.get("p1")
        self.assertEqual(player.score, 85)
        self.assertEqual(player.answers[0].chosen_option, 2)
        self.assertEqual(player.answers[0].elapsed_millis, 3000)

    def test_recorded_answer_is_not_overwritten(self):
        self.round.pending["p1"] = (2, 0)
        score_round(self.round, self.question, self.players)
        self.round.pending["p1"] = (1, 0)
        entries = score_round(self.round, self.question, self.players)

        player = self.players.get("p1")
        self.assertEqual(player.score, 100)
        self.assertEqual(player.answers[0].chosen_option, 2)
        self.assertTrue(entries[0].correct)


if __name__ == '__main__':
    unittest.main()
