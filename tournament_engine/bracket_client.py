from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal, Protocol

from .errors import RemoteError, RemoteRejectedError
from .models import BracketLink, Match, Team

SyncStatus = Literal["ok", "unavailable", "rejected", "skipped"]
RemoteMatchState = Literal["pending", "open", "complete"]


@dataclass(slots=True)
class RemoteParticipant:
    participant_id: str
    display_name: str
    member_ids: list[str]
    member_names: list[str] = field(default_factory=list)
    final_rank: int | None = None


@dataclass(slots=True)
class RemoteMatch:
    match_id: str
    player1_id: str | None
    player2_id: str | None
    state: RemoteMatchState = "pending"
    underway: bool = False
    winner_id: str | None = None


@dataclass(slots=True)
class RemoteState:
    participants: list[RemoteParticipant]
    matches: list[RemoteMatch]


class BracketClient(Protocol):
    """Operations the engine mirrors to a remote bracket provider.

    Every call may be slow. Implementations raise ``RemoteUnavailableError``
    when the provider cannot be reached (including their own timeout) and
    ``RemoteRejectedError`` when it answers with an error payload.
    """

    async def create_tournament(self, name: str, bracket_format: str) -> BracketLink:
        ...

    async def add_participant(self, remote_tournament_id: str, team: Team) -> str:
        ...

    async def remove_participant(
        self, remote_tournament_id: str, remote_participant_id: str
    ) -> None:
        ...

    async def start_tournament(self, remote_tournament_id: str) -> None:
        ...

    async def mark_match_underway(
        self, remote_tournament_id: str, remote_match_id: str
    ) -> None:
        ...

    async def report_match_result(
        self, remote_tournament_id: str, remote_match_id: str, winner_side: int
    ) -> None:
        ...

    async def finalize_tournament(
        self, remote_tournament_id: str, final_rankings: Sequence[Team]
    ) -> None:
        ...

    async def fetch_full_state(self, remote_tournament_id: str) -> RemoteState:
        ...


@dataclass(slots=True)
class RemoteSync:
    """Outcome of mirroring one local change to the bracket provider."""

    status: SyncStatus
    exception: RemoteError | None = None
    reason: str | None = None

    @classmethod
    def from_exception(cls, exc: RemoteError) -> RemoteSync:
        status: SyncStatus = (
            "rejected" if isinstance(exc, RemoteRejectedError) else "unavailable"
        )
        return cls(status=status, exception=exc, reason=str(exc))

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status in ("unavailable", "rejected")


@dataclass(slots=True)
class MutationResult:
    """Result of a local mutation and, separately, of its remote mirror.

    ``changed`` is False when there was nothing to do. ``remote`` is None
    when no remote call was attempted (unlinked or not requested).
    """

    changed: bool
    remote: RemoteSync | None = None
    match: Match | None = None

    def __bool__(self) -> bool:
        return self.changed

    @property
    def remote_ok(self) -> bool:
        return self.remote is not None and self.remote.ok

    @property
    def remote_failed(self) -> bool:
        return self.remote is not None and self.remote.failed

    @property
    def warning(self) -> str | None:
        if self.remote is None:
            return None
        return self.remote.reason


__all__ = [
    "BracketClient",
    "MutationResult",
    "RemoteMatch",
    "RemoteMatchState",
    "RemoteParticipant",
    "RemoteState",
    "RemoteSync",
    "SyncStatus",
]
