from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from .errors import InvalidRosterError

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

MatchState = Literal["not_started", "underway", "finished"]
TournamentState = Literal["pending", "active", "completed"]

MATCH_STATES: tuple[MatchState, ...] = ("not_started", "underway", "finished")
TOURNAMENT_STATES: tuple[TournamentState, ...] = ("pending", "active", "completed")

_ORDINAL_SUFFIXES = ("th", "st", "nd", "rd", "th")


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


def ordinal(number: int) -> str:
    """Return ``number`` with its English ordinal suffix (1st, 12th, 23rd)."""
    if (number // 10) % 10 == 1:
        return f"{number}th"
    return f"{number}{_ORDINAL_SUFFIXES[min(4, number % 10)]}"


def _optional_str(value: object) -> str | None:
    if value in (None, "", "None"):
        return None
    return str(value)


def _optional_int(value: object) -> int | None:
    if value in (None, "", "None"):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class Member:
    member_id: str
    display_name: str

    def to_dict(self) -> dict[str, object]:
        return {"member_id": self.member_id, "display_name": self.display_name}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Member:
        return cls(
            member_id=str(data.get("member_id", "")),
            display_name=str(data.get("display_name", "")),
        )


@dataclass(eq=False, slots=True)
class Team:
    """One or more members entered together in a match or tournament.

    Two teams are equal when they hold the same member ids with the same
    multiplicity; ordering, ranking and remote ids do not take part.
    """

    members: tuple[Member, ...]
    ranking: int | None = None
    remote_id: str | None = None

    def __post_init__(self) -> None:
        self.members = tuple(self.members)
        if not self.members:
            raise InvalidRosterError("A team needs at least one member")

    @classmethod
    def create(cls, members: Iterable[Member]) -> Team:
        return cls(members=tuple(members))

    @property
    def member_ids(self) -> list[str]:
        return [member.member_id for member in self.members]

    @property
    def is_ranked(self) -> bool:
        return self.ranking is not None

    def is_same_team(self, other: Team) -> bool:
        if len(self.members) != len(other.members):
            return False
        counts = Counter(self.member_ids)
        for member_id in other.member_ids:
            if counts[member_id] == 0:
                return False
            counts[member_id] -= 1
        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Team):
            return NotImplemented
        return self.is_same_team(other)

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.member_ids)))

    def __str__(self) -> str:
        return ", ".join(member.display_name for member in self.members)

    def podium_label(self) -> str:
        if self.ranking is None:
            return str(self)
        return f"{ordinal(self.ranking)}: {self}"

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "members": [member.to_dict() for member in self.members]
        }
        if self.ranking is not None:
            data["ranking"] = self.ranking
        if self.remote_id is not None:
            data["remote_id"] = self.remote_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Team:
        members_data: Iterable[dict[str, object]] = data.get("members", [])  # type: ignore[assignment]
        return cls(
            members=tuple(Member.from_dict(item) for item in members_data),
            ranking=_optional_int(data.get("ranking")),
            remote_id=_optional_str(data.get("remote_id")),
        )


@dataclass(slots=True)
class MatchResult:
    """Outcome handed over by the rating service once a match is rated.

    ``result`` is 1 when ``team1`` won, 2 when ``team2`` won and 0 for a draw.
    """

    team1: Team
    team2: Team
    result: int = 1

    def __post_init__(self) -> None:
        if self.result not in (0, 1, 2):
            raise ValueError("result must be 0 (draw), 1 or 2")

    @property
    def is_draw(self) -> bool:
        return self.result == 0

    @property
    def winner(self) -> Team | None:
        if self.result == 1:
            return self.team1
        if self.result == 2:
            return self.team2
        return None

    @property
    def loser(self) -> Team | None:
        if self.result == 1:
            return self.team2
        if self.result == 2:
            return self.team1
        return None


@dataclass(slots=True)
class Match:
    team1: Team
    team2: Team
    state: MatchState = "not_started"
    winner_side: int | None = None
    remote_id: str | None = None

    def involves(self, team: Team) -> bool:
        return self.team1 == team or self.team2 == team

    def is_between(self, team1: Team, team2: Team) -> bool:
        return (self.team1 == team1 and self.team2 == team2) or (
            self.team1 == team2 and self.team2 == team1
        )

    def side_of(self, team: Team) -> int | None:
        if self.team1 == team:
            return 1
        if self.team2 == team:
            return 2
        return None

    @property
    def winner(self) -> Team | None:
        if self.winner_side == 1:
            return self.team1
        if self.winner_side == 2:
            return self.team2
        return None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "team1": self.team1.to_dict(),
            "team2": self.team2.to_dict(),
            "state": self.state,
        }
        if self.winner_side is not None:
            data["winner_side"] = self.winner_side
        if self.remote_id is not None:
            data["remote_id"] = self.remote_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Match:
        state = str(data.get("state", "not_started"))
        if state not in MATCH_STATES:
            state = "not_started"
        return cls(
            team1=Team.from_dict(data.get("team1", {})),  # type: ignore[arg-type]
            team2=Team.from_dict(data.get("team2", {})),  # type: ignore[arg-type]
            state=state,  # type: ignore[arg-type]
            winner_side=_optional_int(data.get("winner_side")),
            remote_id=_optional_str(data.get("remote_id")),
        )


@dataclass(slots=True)
class BracketLink:
    provider_id: str
    bracket_format: str
    url: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "provider_id": self.provider_id,
            "bracket_format": self.bracket_format,
        }
        if self.url is not None:
            data["url"] = self.url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BracketLink:
        return cls(
            provider_id=str(data.get("provider_id", "")),
            bracket_format=str(data.get("bracket_format", "")),
            url=_optional_str(data.get("url")),
        )


__all__ = [
    "ISO_FORMAT",
    "MATCH_STATES",
    "TOURNAMENT_STATES",
    "BracketLink",
    "Match",
    "MatchResult",
    "MatchState",
    "Member",
    "Team",
    "TournamentState",
    "ordinal",
    "utc_now_iso",
]
