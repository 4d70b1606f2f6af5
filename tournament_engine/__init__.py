"""Tournament, team and match consistency engine with bracket mirroring."""

from .bracket_client import (
    BracketClient,
    MutationResult,
    RemoteMatch,
    RemoteParticipant,
    RemoteState,
    RemoteSync,
)
from .controller import TournamentController
from .errors import (
    DuplicateTeamError,
    InvalidRosterError,
    InvalidMatchError,
    InvalidScheduleError,
    InvalidTransitionError,
    NotLinkedError,
    RemoteError,
    RemoteRejectedError,
    RemoteUnavailableError,
    TeamBusyError,
    TournamentError,
)
from .models import BracketLink, Match, MatchResult, Member, Team, ordinal, utc_now_iso
from .tournament import Tournament

__all__ = [
    "BracketClient",
    "BracketLink",
    "DuplicateTeamError",
    "InvalidMatchError",
    "InvalidRosterError",
    "InvalidScheduleError",
    "InvalidTransitionError",
    "Match",
    "MatchResult",
    "Member",
    "MutationResult",
    "NotLinkedError",
    "RemoteError",
    "RemoteMatch",
    "RemoteParticipant",
    "RemoteRejectedError",
    "RemoteState",
    "RemoteSync",
    "RemoteUnavailableError",
    "Team",
    "TeamBusyError",
    "Tournament",
    "TournamentController",
    "TournamentError",
    "ordinal",
    "utc_now_iso",
]
