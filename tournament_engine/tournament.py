from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import UTC, date, datetime
from typing import ClassVar, Final, TypeVar

from .bracket_client import (
    BracketClient,
    MutationResult,
    RemoteMatch,
    RemoteParticipant,
    RemoteState,
    RemoteSync,
)
from .errors import (
    DuplicateTeamError,
    InvalidMatchError,
    InvalidTransitionError,
    NotLinkedError,
    RemoteError,
    RemoteRejectedError,
    TeamBusyError,
)
from .models import (
    ISO_FORMAT,
    TOURNAMENT_STATES,
    BracketLink,
    Match,
    MatchResult,
    Member,
    Team,
    TournamentState,
    utc_now_iso,
)
from .schedule import combine_schedule, format_schedule

log: Final = logging.getLogger("tournament-engine")

T = TypeVar("T")


class Tournament:
    """A scheduled tournament: roster, match log, lifecycle and bracket mirror.

    Local state is authoritative. When a bracket is linked every roster or
    match change is mirrored to the provider after the local change has been
    committed, and a failed mirror is reported in the returned
    ``MutationResult`` instead of undoing the local change. The per-tournament
    lock guards local state only and is never held across a remote call.
    """

    PK_TEMPLATE: ClassVar[str] = "GUILD#%s"
    SK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"

    def __init__(
        self,
        name: str,
        scheduled_at: datetime,
        *,
        tournament_id: str | None = None,
        created_at: str | None = None,
        state: TournamentState = "pending",
        teams: Iterable[Team] = (),
        matches: Iterable[Match] = (),
        bracket: BracketLink | None = None,
        bracket_client: BracketClient | None = None,
    ) -> None:
        self.name = name
        self.scheduled_at = scheduled_at
        self.tournament_id = tournament_id or uuid.uuid4().hex
        self.created_at = created_at or utc_now_iso()
        self.bracket = bracket
        self._state: TournamentState = state
        self._teams: list[Team] = list(teams)
        self._matches: list[Match] = list(matches)
        self._client = bracket_client
        self._lock = asyncio.Lock()

    @classmethod
    def generate(
        cls,
        name: str,
        utc_time: int | str,
        calendar_date: str = "",
        *,
        today: date | None = None,
    ) -> Tournament:
        return cls(name, combine_schedule(utc_time, calendar_date, today=today))

    def __repr__(self) -> str:
        return f"<Tournament {self.name!r} state={self._state} teams={len(self._teams)}>"

    # ----- Read access -----
    @property
    def state(self) -> TournamentState:
        return self._state

    @property
    def teams(self) -> tuple[Team, ...]:
        return tuple(self._teams)

    @property
    def matches(self) -> tuple[Match, ...]:
        return tuple(self._matches)

    @property
    def underway_matches(self) -> list[Match]:
        return [match for match in self._matches if match.state == "underway"]

    @property
    def is_bracket_linked(self) -> bool:
        return self.bracket is not None

    def find_team(self, team: Team) -> Team | None:
        index = self._index_of(team)
        return self._teams[index] if index is not None else None

    def get_time_str(self) -> str:
        return format_schedule(self.scheduled_at)

    # ----- Bracket link -----
    def attach_client(self, client: BracketClient | None) -> None:
        self._client = client

    async def link_bracket(
        self, client: BracketClient, bracket_format: str
    ) -> BracketLink:
        """Create the remote bracket for this tournament and remember it."""
        if self.bracket is not None:
            raise InvalidTransitionError(
                f"{self.name} is already linked to bracket {self.bracket.provider_id}"
            )
        link = await client.create_tournament(self.name, bracket_format)
        self.bracket = link
        self._client = client
        log.info(
            "Linked tournament %s to remote bracket %s", self.name, link.provider_id
        )
        return link

    # ----- Roster -----
    async def add_team(self, team: Team, notify_remote: bool = True) -> MutationResult:
        async with self._lock:
            self._ensure_not_completed("add teams to")
            if self._index_of(team) is not None:
                raise DuplicateTeamError(team)
            self._teams.append(team)
        log.info("Added %s to tournament %s", team, self.name)

        if not notify_remote or self.bracket is None:
            return MutationResult(changed=True)
        sync, participant_id = await self._mirror(
            "add participant",
            lambda client, link: client.add_participant(link.provider_id, team),
        )
        if participant_id is None:
            return MutationResult(changed=True, remote=sync)
        async with self._lock:
            still_entered = any(entry is team for entry in self._teams)
            if still_entered:
                team.remote_id = participant_id
        if still_entered:
            return MutationResult(changed=True, remote=sync)

        # Removed while the participant was being registered.
        log.info(
            "%s left %s during registration; withdrawing participant %s",
            team,
            self.name,
            participant_id,
        )
        sync, _ = await self._mirror(
            "withdraw participant",
            lambda client, link: client.remove_participant(
                link.provider_id, participant_id
            ),
        )
        if sync.failed:
            sync.reason = (
                f"{team} was removed locally but participant {participant_id} "
                f"is still registered on the bracket: {sync.reason}"
            )
            return MutationResult(changed=True, remote=sync)
        return MutationResult(
            changed=True,
            remote=RemoteSync(
                status="skipped",
                reason=(
                    f"{team} was removed while registering; participant "
                    f"{participant_id} was withdrawn from the bracket"
                ),
            ),
        )

    async def remove_team(
        self, team: Team, notify_remote: bool = True
    ) -> MutationResult:
        async with self._lock:
            self._ensure_not_completed("remove teams from")
            index = self._index_of(team)
            if index is None:
                return MutationResult(changed=False)
            removed = self._teams.pop(index)
        log.info("Removed %s from tournament %s", removed, self.name)

        if not notify_remote or self.bracket is None:
            return MutationResult(changed=True)
        participant_id = removed.remote_id
        if participant_id is None:
            return MutationResult(
                changed=True,
                remote=RemoteSync(
                    status="skipped",
                    reason=f"{removed} was never registered on the bracket",
                ),
            )
        sync, _ = await self._mirror(
            "remove participant",
            lambda client, link: client.remove_participant(
                link.provider_id, participant_id
            ),
        )
        return MutationResult(changed=True, remote=sync)

    # ----- Lifecycle -----
    async def start(self) -> MutationResult:
        async with self._lock:
            if self._state != "pending":
                raise InvalidTransitionError(
                    f"The tournament {self.name} cannot be started while {self._state}."
                )
            self._state = "active"
        log.info("Started tournament %s", self.name)

        if self.bracket is None:
            return MutationResult(changed=True)
        sync, _ = await self._mirror(
            "start tournament",
            lambda client, link: client.start_tournament(link.provider_id),
        )
        return MutationResult(changed=True, remote=sync)

    async def finalise_tournament(self, rankings: Sequence[Team]) -> MutationResult:
        """Mark the tournament completed and hand out podium rankings.

        ``rankings`` runs from the winner down; teams it does not name end up
        unranked. Teams outside the roster and repeated teams are skipped but
        keep their place in the count. Completion is local and sticks even
        when the remote finalize fails, in which case ``remote_failed`` is set
        on the result.

        A linked tournament finalised without rankings takes its podium from
        the final ranks the provider reports after finalizing.
        """
        async with self._lock:
            if self._state == "completed" or (
                self._state == "pending" and self._matches
            ):
                raise InvalidTransitionError(
                    f"The tournament {self.name} is not active."
                )
            for entry in self._teams:
                entry.ranking = None
            ranked: list[Team] = []
            seen: set[Team] = set()
            for position, team in enumerate(rankings, start=1):
                entry = self.find_team(team)
                if entry is None:
                    log.warning(
                        "Ranked team %s is not in the roster of %s", team, self.name
                    )
                    continue
                if entry in seen:
                    log.warning("Ignoring repeated ranking of %s at %d", team, position)
                    continue
                seen.add(entry)
                entry.ranking = position
                ranked.append(entry)
            self._state = "completed"
        log.info("Completed tournament %s with %d ranked teams", self.name, len(ranked))

        if self.bracket is None:
            return MutationResult(changed=True)
        sync, _ = await self._mirror(
            "finalize tournament",
            lambda client, link: client.finalize_tournament(link.provider_id, ranked),
        )
        if sync.ok and not rankings:
            await self._fill_remote_rankings(sync)
        return MutationResult(changed=True, remote=sync)

    async def _fill_remote_rankings(self, sync: RemoteSync) -> None:
        fetched, remote_state = await self._mirror(
            "fetch final ranks",
            lambda client, link: client.fetch_full_state(link.provider_id),
        )
        if remote_state is None:
            sync.reason = f"Final ranks could not be fetched: {fetched.reason}"
            return
        final_ranks = {
            participant.participant_id: participant.final_rank
            for participant in remote_state.participants
            if participant.final_rank is not None
        }
        async with self._lock:
            filled = 0
            for entry in self._teams:
                if entry.remote_id in final_ranks:
                    entry.ranking = final_ranks[entry.remote_id]
                    filled += 1
        log.info("Filled %d rankings of %s from the bracket", filled, self.name)

    # ----- Matches -----
    async def start_match(
        self, team1: Team, team2: Team, force: bool = False
    ) -> MutationResult:
        _ensure_distinct(team1, team2)
        async with self._lock:
            self._ensure_active()
            team1 = self.find_team(team1) or team1
            team2 = self.find_team(team2) or team2
            if not force:
                for team in (team1, team2):
                    if any(match.involves(team) for match in self.underway_matches):
                        raise TeamBusyError(team)
            match = self._open_match(team1, team2)
            if match is None:
                match = Match(team1=team1, team2=team2)
                self._matches.append(match)
            match.state = "underway"
            remote_match_id = match.remote_id
        log.info("Started match %s vs %s in %s", team1, team2, self.name)

        if self.bracket is None:
            return MutationResult(changed=True, match=match)
        if remote_match_id is None:
            return MutationResult(
                changed=True,
                match=match,
                remote=RemoteSync(
                    status="skipped",
                    reason=f"{team1} vs {team2} is not in the bracket index",
                ),
            )
        sync, _ = await self._mirror(
            "mark match underway",
            lambda client, link: client.mark_match_underway(
                link.provider_id, remote_match_id
            ),
        )
        return MutationResult(changed=True, match=match, remote=sync)

    async def add_match(self, result: MatchResult) -> MutationResult:
        """Record a rated match as finished and report its winner."""
        _ensure_distinct(result.team1, result.team2)
        async with self._lock:
            self._ensure_active()
            team1 = self.find_team(result.team1) or result.team1
            team2 = self.find_team(result.team2) or result.team2
            match = self._open_match(team1, team2)
            if match is None:
                match = Match(team1=team1, team2=team2)
                self._matches.append(match)
            winner = result.winner
            match.winner_side = match.side_of(winner) if winner is not None else None
            match.state = "finished"
            remote_match_id = match.remote_id
            winner_side = match.winner_side
        log.info(
            "Recorded %s vs %s in %s (winner: %s)",
            team1,
            team2,
            self.name,
            winner if winner is not None else "draw",
        )

        if self.bracket is None:
            return MutationResult(changed=True, match=match)
        if winner_side is None:
            return MutationResult(
                changed=True,
                match=match,
                remote=RemoteSync(
                    status="skipped", reason="Draws are not reported to the bracket"
                ),
            )
        if remote_match_id is None:
            return MutationResult(
                changed=True,
                match=match,
                remote=RemoteSync(
                    status="skipped",
                    reason=f"{team1} vs {team2} is not in the bracket index",
                ),
            )
        sync, _ = await self._mirror(
            "report match result",
            lambda client, link: client.report_match_result(
                link.provider_id, remote_match_id, winner_side
            ),
        )
        return MutationResult(changed=True, match=match, remote=sync)

    # ----- Rebuild -----
    async def rebuild_index(self) -> MutationResult:
        """Replace the roster and match log with the provider's current state.

        The remote state is fetched and fully mapped before the local state is
        touched, so a failure at any point leaves the roster and match log as
        they were.
        """
        if self.bracket is None or self._client is None:
            raise NotLinkedError(f"{self.name} is not linked to a remote bracket")
        link = self.bracket
        try:
            remote_state = await self._client.fetch_full_state(link.provider_id)
        except RemoteError as exc:
            log.warning("Aborted rebuilding the index of %s: %s", self.name, exc)
            raise
        teams, matches = _map_remote_state(remote_state)
        async with self._lock:
            self._teams = teams
            self._matches = matches
        log.info(
            "Rebuilt the index of %s: %d teams, %d matches",
            self.name,
            len(teams),
            len(matches),
        )
        return MutationResult(changed=True, remote=RemoteSync(status="ok"))

    # ----- Persistence -----
    def to_item(self, guild_id: int) -> dict[str, object]:
        item: dict[str, object] = {
            "pk": self.PK_TEMPLATE % guild_id,
            "sk": self.SK_TEMPLATE % self.tournament_id,
            "tournament_id": self.tournament_id,
            "name": self.name,
            "scheduled_at": self.scheduled_at.astimezone(UTC).strftime(ISO_FORMAT),
            "created_at": self.created_at,
            "state": self._state,
            "teams": [team.to_dict() for team in self._teams],
            "matches": [match.to_dict() for match in self._matches],
        }
        if self.bracket is not None:
            item["bracket"] = self.bracket.to_dict()
        return item

    @classmethod
    def from_item(
        cls, item: dict[str, object], bracket_client: BracketClient | None = None
    ) -> Tournament:
        sk_value = str(item.get("sk", ""))
        tournament_id = str(item.get("tournament_id") or sk_value.split("#", 1)[-1])
        state = str(item.get("state", "pending"))
        if state not in TOURNAMENT_STATES:
            state = "pending"
        teams_data: Iterable[dict[str, object]] = item.get("teams", [])  # type: ignore[assignment]
        matches_data: Iterable[dict[str, object]] = item.get("matches", [])  # type: ignore[assignment]
        bracket_data = item.get("bracket")
        return cls(
            name=str(item.get("name", "")),
            scheduled_at=datetime.strptime(
                str(item["scheduled_at"]), ISO_FORMAT
            ).replace(tzinfo=UTC),
            tournament_id=tournament_id,
            created_at=str(item.get("created_at", "")),
            state=state,  # type: ignore[arg-type]
            teams=[Team.from_dict(data) for data in teams_data],
            matches=[Match.from_dict(data) for data in matches_data],
            bracket=(
                BracketLink.from_dict(bracket_data)  # type: ignore[arg-type]
                if isinstance(bracket_data, dict)
                else None
            ),
            bracket_client=bracket_client,
        )

    # ----- Helpers -----
    def _index_of(self, team: Team) -> int | None:
        for index, entry in enumerate(self._teams):
            if entry == team:
                return index
        return None

    def _open_match(self, team1: Team, team2: Team) -> Match | None:
        for match in self._matches:
            if match.state != "finished" and match.is_between(team1, team2):
                return match
        return None

    def _ensure_active(self) -> None:
        if self._state != "active":
            raise InvalidTransitionError(f"The tournament {self.name} is not active.")

    def _ensure_not_completed(self, action: str) -> None:
        if self._state == "completed":
            raise InvalidTransitionError(
                f"Cannot {action} {self.name}; it has already been completed."
            )

    async def _mirror(
        self,
        action: str,
        call: Callable[[BracketClient, BracketLink], Awaitable[T]],
    ) -> tuple[RemoteSync, T | None]:
        link = self.bracket
        client = self._client
        if link is None or client is None:
            return (
                RemoteSync(
                    status="skipped",
                    reason=f"No bracket client is attached to {self.name}",
                ),
                None,
            )
        try:
            value = await call(client, link)
        except RemoteError as exc:
            log.warning(
                "Could not %s on bracket %s for %s: %s",
                action,
                link.provider_id,
                self.name,
                exc,
            )
            return RemoteSync.from_exception(exc), None
        return RemoteSync(status="ok"), value


def _ensure_distinct(team1: Team, team2: Team) -> None:
    if team1 == team2:
        raise InvalidMatchError(f"{team1} cannot play a match against itself")


def _team_from_participant(participant: RemoteParticipant) -> Team:
    if not participant.member_ids:
        raise RemoteRejectedError(
            [f"Participant {participant.display_name!r} has no member ids"]
        )
    names = participant.member_names
    if len(names) != len(participant.member_ids):
        log.debug(
            "Participant %s has %d names for %d members; using ids as names",
            participant.participant_id,
            len(names),
            len(participant.member_ids),
        )
        names = participant.member_ids
    return Team(
        members=tuple(
            Member(member_id=member_id, display_name=name)
            for member_id, name in zip(participant.member_ids, names)
        ),
        ranking=participant.final_rank,
        remote_id=participant.participant_id,
    )


def _match_from_remote(remote: RemoteMatch, lookup: dict[str, Team]) -> Match:
    try:
        team1 = lookup[str(remote.player1_id)]
        team2 = lookup[str(remote.player2_id)]
    except KeyError as exc:
        raise RemoteRejectedError(
            [f"Match {remote.match_id} references unknown participant {exc.args[0]}"]
        ) from exc
    if remote.state == "complete":
        winner_side = None
        if remote.winner_id is not None:
            winner_side = 1 if str(remote.winner_id) == team1.remote_id else 2
        return Match(
            team1=team1,
            team2=team2,
            state="finished",
            winner_side=winner_side,
            remote_id=remote.match_id,
        )
    return Match(
        team1=team1,
        team2=team2,
        state="underway" if remote.underway else "not_started",
        remote_id=remote.match_id,
    )


def _map_remote_state(remote_state: RemoteState) -> tuple[list[Team], list[Match]]:
    teams: list[Team] = []
    lookup: dict[str, Team] = {}
    for participant in remote_state.participants:
        team = _team_from_participant(participant)
        if team in teams:
            raise RemoteRejectedError(
                [f"Participant {participant.display_name!r} is entered twice"]
            )
        teams.append(team)
        lookup[participant.participant_id] = team
    matches = [
        _match_from_remote(remote, lookup)
        for remote in remote_state.matches
        if remote.player1_id is not None and remote.player2_id is not None
    ]
    return teams, matches


__all__ = ["Tournament"]
