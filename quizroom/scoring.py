"""
Speed-weighted scoring and leaderboard computation.
"""
from typing import Iterable, List

from .models import (
    Answer, LeaderboardEntry, Player, Question, Round, RoundEntry
)
from .players import PlayerRegistry

BASE_POINTS = 100


def compute_points(correct: bool, elapsed_millis: int, time_limit_millis: int) -> int:
    """
    Score a single answer.

    A correct answer earns between half and all of BASE_POINTS, scaled by the
    share of the time limit still remaining: ceil(BASE * (0.5 + 0.5 * remaining)).
    Anything at or past the limit earns exactly half. Wrong answers earn nothing.

    Args:
        correct: Whether the chosen option was the right one
        elapsed_millis: Milliseconds from round start to the answer
        time_limit_millis: Length of the round in milliseconds

    Returns:
        Points awarded
    """
    if not correct:
        return 0
    if time_limit_millis <= 0:
        return BASE_POINTS // 2

    remaining = max(0, time_limit_millis - max(0, elapsed_millis))
    # ceil(BASE * (limit + remaining) / (2 * limit)) without float rounding
    numerator = BASE_POINTS * (time_limit_millis + remaining)
    points = -(-numerator // (2 * time_limit_millis))
    return max(1, points)


def score_round(round_: Round, question: Question, players: PlayerRegistry) -> List[RoundEntry]:
    """
    Close a round: award points, store answers on players and build the entries.

    Entries follow answer arrival order, then players who did not answer in
    join order.
    """
    entries = []
    for identity, (chosen, elapsed) in round_.pending.items():
        player = players.get(identity)
        if player is None:
            continue
        correct = chosen == question.correct_option
        points = compute_points(correct, elapsed, round_.time_limit_millis)
        if round_.question_index not in player.answers:
            player.answers[round_.question_index] = Answer(chosen, elapsed, points)
            player.score += points
        recorded = player.answers[round_.question_index]
        entries.append(RoundEntry(
            player_id=identity,
            display_name=player.display_name,
            chosen_option=recorded.chosen_option,
            correct=recorded.chosen_option == question.correct_option,
            points_awarded=recorded.points_awarded,
            elapsed_millis=recorded.elapsed_millis
        ))

    for player in players.in_join_order():
        if player.id not in round_.pending:
            entries.append(RoundEntry(
                player_id=player.id,
                display_name=player.display_name,
                chosen_option=None,
                correct=False,
                points_awarded=0
            ))
    return entries


def leaderboard(players: Iterable[Player]) -> List[LeaderboardEntry]:
    """Rank players by score descending, ties broken by join order."""
    ordered = sorted(players, key=lambda player: (-player.score, player.join_order))
    return [
        LeaderboardEntry(
            rank=position,
            player_id=player.id,
            display_name=player.display_name,
            score=player.score
        )
        for position, player in enumerate(ordered, start=1)
    ]
