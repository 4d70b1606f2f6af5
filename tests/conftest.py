from __future__ import annotations

from collections.abc import Sequence

import pytest

from tournament_engine import (
    BracketLink,
    RemoteError,
    RemoteMatch,
    RemoteParticipant,
    RemoteState,
    RemoteUnavailableError,
    Team,
)


class FakeBracketClient:
    """In-memory bracket provider recording every call it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.failures: dict[str, RemoteError] = {}
        self.participants: dict[str, RemoteParticipant] = {}
        self.matches: list[RemoteMatch] = []
        self._next_id = 100

    def fail(self, operation: str, exc: RemoteError | None = None) -> None:
        self.failures[operation] = exc or RemoteUnavailableError("Challonge is down")

    def recover(self, operation: str) -> None:
        self.failures.pop(operation, None)

    def called(self, operation: str) -> list[tuple[object, ...]]:
        return [args for name, args in self.calls if name == operation]

    def _record(self, operation: str, *args: object) -> None:
        self.calls.append((operation, args))
        if operation in self.failures:
            raise self.failures[operation]

    async def create_tournament(self, name: str, bracket_format: str) -> BracketLink:
        self._record("create_tournament", name, bracket_format)
        return BracketLink(
            provider_id="9001",
            bracket_format=bracket_format,
            url="https://challonge.com/weekly_1",
        )

    async def add_participant(self, remote_tournament_id: str, team: Team) -> str:
        self._record("add_participant", remote_tournament_id, team)
        self._next_id += 1
        participant_id = str(self._next_id)
        self.participants[participant_id] = RemoteParticipant(
            participant_id=participant_id,
            display_name=str(team),
            member_ids=team.member_ids,
            member_names=[member.display_name for member in team.members],
        )
        return participant_id

    async def remove_participant(
        self, remote_tournament_id: str, remote_participant_id: str
    ) -> None:
        self._record("remove_participant", remote_tournament_id, remote_participant_id)
        self.participants.pop(remote_participant_id, None)

    async def start_tournament(self, remote_tournament_id: str) -> None:
        self._record("start_tournament", remote_tournament_id)

    async def mark_match_underway(
        self, remote_tournament_id: str, remote_match_id: str
    ) -> None:
        self._record("mark_match_underway", remote_tournament_id, remote_match_id)

    async def report_match_result(
        self, remote_tournament_id: str, remote_match_id: str, winner_side: int
    ) -> None:
        self._record(
            "report_match_result", remote_tournament_id, remote_match_id, winner_side
        )

    async def finalize_tournament(
        self, remote_tournament_id: str, final_rankings: Sequence[Team]
    ) -> None:
        self._record("finalize_tournament", remote_tournament_id, list(final_rankings))

    async def fetch_full_state(self, remote_tournament_id: str) -> RemoteState:
        self._record("fetch_full_state", remote_tournament_id)
        return RemoteState(
            participants=list(self.participants.values()),
            matches=list(self.matches),
        )


@pytest.fixture
def bracket_client() -> FakeBracketClient:
    return FakeBracketClient()
