"""
Player registry for a quiz session.
"""
import logging
from typing import Dict, List, Optional

from .models import Player

logger = logging.getLogger(__name__)


def normalize_identity(identity: str) -> str:
    """Fallback display name for an identity with no profile name."""
    name = str(identity).split('@')[0].lstrip('+')
    return name or str(identity)


class PlayerRegistry:
    """Tracks which identities have joined a session and their scores."""

    def __init__(self):
        self._players: Dict[str, Player] = {}
        self._next_order = 0

    def add(self, identity: str, display_name: Optional[str] = None) -> bool:
        """
        Register an identity as a player.

        Args:
            identity: Transport identity of the participant
            display_name: Profile name, normalized identity is used if missing

        Returns:
            True if the player was added, False if already registered
        """
        if identity in self._players:
            return False

        self._players[identity] = Player(
            id=identity,
            display_name=display_name or normalize_identity(identity),
            join_order=self._next_order
        )
        self._next_order += 1
        logger.debug(f"Player {identity} registered with join order {self._next_order - 1}")
        return True

    def get(self, identity: str) -> Optional[Player]:
        return self._players.get(identity)

    def in_join_order(self) -> List[Player]:
        return sorted(self._players.values(), key=lambda player: player.join_order)

    def ids(self) -> List[str]:
        return [player.id for player in self.in_join_order()]

    def __contains__(self, identity: str) -> bool:
        return identity in self._players

    def __len__(self) -> int:
        return len(self._players)
