"""Server-authoritative turn computation.

Nothing here is persisted: callers recompute on every read so clients can
never drift from the server's view of whose turn it is.
"""
from typing import Sequence

from mapveto.models.base import SessionFormat, SessionStatus
from mapveto.models.session import VetoSession
from mapveto.models.session_player import SessionPlayer
from mapveto.utils.datetime_helpers import ensure_utc

# First pick, then alternating pairs: P0, P1, P1, P0, P0, P1, P1, P0, ...
ABBA_PATTERN = (0, 1, 1, 0)


def sort_players_by_creation(players: Sequence[SessionPlayer]) -> list[SessionPlayer]:
    """Order players by insertion, which defines their turn index."""
    return sorted(players, key=lambda p: (p.seat_number, ensure_utc(p.created_at)))


def abba_active_index(current_turn: int) -> int:
    """Index of the player who acts on ``current_turn`` in ABBA format."""
    return ABBA_PATTERN[current_turn % len(ABBA_PATTERN)]


def is_your_turn(
    session: VetoSession,
    player: SessionPlayer,
    players_sorted_by_creation: Sequence[SessionPlayer],
) -> bool:
    """Return True if ``player`` may act right now."""
    if session.status != SessionStatus.IN_PROGRESS.value:
        return False

    if session.format == SessionFormat.MULTIPLAYER.value:
        return not player.has_voted_this_round

    if session.format == SessionFormat.ABBA.value:
        player_ids = [p.player_id for p in players_sorted_by_creation]
        if player.player_id not in player_ids:
            return False
        return player_ids.index(player.player_id) == abba_active_index(session.current_turn)

    return False
