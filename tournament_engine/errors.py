from __future__ import annotations


class TournamentError(Exception):
    """Base exception for tournament engine failures."""


class InvalidRosterError(TournamentError, ValueError):
    """Raised when a team is built from an empty member list."""


class InvalidScheduleError(TournamentError, ValueError):
    """Raised when a tournament time or calendar date cannot be parsed."""


class DuplicateTeamError(TournamentError):
    """Raised when an equal team is already entered in the roster."""

    def __init__(self, team: object) -> None:
        super().__init__(f"{team} is already in the bracket")
        self.team = team


class TeamBusyError(TournamentError):
    """Raised when a team already has a match underway."""

    def __init__(self, team: object) -> None:
        super().__init__(f"{team} is already playing a match")
        self.team = team


class InvalidMatchError(TournamentError, ValueError):
    """Raised when a match would pit a team against itself."""


class NotLinkedError(TournamentError):
    """Raised when a remote-only operation runs on an unlinked tournament."""


class InvalidTransitionError(TournamentError):
    """Raised when a lifecycle transition is not allowed from the current state."""


class RemoteError(TournamentError):
    """Base exception for bracket provider failures."""


class RemoteUnavailableError(RemoteError):
    """The bracket provider could not be reached or did not answer in time."""


class RemoteRejectedError(RemoteError):
    """The bracket provider answered with a well-formed error response."""

    def __init__(self, errors: list[str], status: int | None = None) -> None:
        message = "; ".join(errors) if errors else "Request rejected"
        super().__init__(message)
        self.errors = list(errors)
        self.status = status


__all__ = [
    "TournamentError",
    "InvalidRosterError",
    "InvalidScheduleError",
    "DuplicateTeamError",
    "TeamBusyError",
    "InvalidMatchError",
    "NotLinkedError",
    "InvalidTransitionError",
    "RemoteError",
    "RemoteUnavailableError",
    "RemoteRejectedError",
]
