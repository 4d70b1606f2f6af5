"""Challonge v1 REST adapter implementing :class:`BracketClient`."""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import Sequence
from typing import Final

import requests

from .bracket_client import RemoteMatch, RemoteParticipant, RemoteState
from .config import DEFAULT_CHALLONGE_API_BASE, ChallongeSettings
from .errors import RemoteRejectedError, RemoteUnavailableError
from .models import BracketLink, Team

log: Final = logging.getLogger("tournament-engine.challonge")

_SLUG_PATTERN = re.compile(r"[^a-z0-9_]+")
_NAME_SEPARATOR = ", "
_MISC_SEPARATOR = ","


def _unwrap(entry: object, key: str) -> dict:
    if isinstance(entry, dict):
        inner = entry.get(key)
        if isinstance(inner, dict):
            return inner
        return entry
    return {}


def _error_messages(response: requests.Response | None) -> list[str]:
    if response is None:
        return []
    try:
        payload = response.json()
    except ValueError:
        return []
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list):
            return [str(error) for error in errors]
        if isinstance(errors, str):
            return [errors]
    return []


def _optional_id(value: object) -> str | None:
    if value in (None, ""):
        return None
    return str(value)


def _parse_participant(data: dict) -> RemoteParticipant:
    display_name = str(data.get("name") or data.get("display_name") or "")
    misc = str(data.get("misc") or "")
    member_ids = [part.strip() for part in misc.split(_MISC_SEPARATOR) if part.strip()]
    member_names = [part for part in display_name.split(_NAME_SEPARATOR) if part]
    participant_id = str(data.get("id", ""))
    final_rank = data.get("final_rank")
    if final_rank is not None:
        try:
            final_rank = int(final_rank)
        except (TypeError, ValueError) as exc:
            raise RemoteRejectedError(
                [f"Participant {participant_id} has invalid final rank {final_rank!r}"]
            ) from exc
    return RemoteParticipant(
        participant_id=participant_id,
        display_name=display_name,
        member_ids=member_ids,
        member_names=member_names,
        final_rank=final_rank,
    )


def _parse_match(data: dict) -> RemoteMatch:
    state = str(data.get("state", "pending"))
    if state not in ("pending", "open", "complete"):
        state = "pending"
    return RemoteMatch(
        match_id=str(data.get("id", "")),
        player1_id=_optional_id(data.get("player1_id")),
        player2_id=_optional_id(data.get("player2_id")),
        state=state,  # type: ignore[arg-type]
        underway=data.get("underway_at") is not None,
        winner_id=_optional_id(data.get("winner_id")),
    )


def tournament_slug(name: str) -> str:
    """Return a unique Challonge URL slug derived from ``name``."""
    base = _SLUG_PATTERN.sub("_", name.lower()).strip("_")[:40]
    suffix = uuid.uuid4().hex[:8]
    return f"{base}_{suffix}" if base else suffix


class ChallongeClient:
    def __init__(
        self,
        username: str,
        api_key: str,
        *,
        api_base: str = DEFAULT_CHALLONGE_API_BASE,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._auth = (username, api_key)
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: ChallongeSettings) -> ChallongeClient:
        return cls(
            settings.username,
            settings.api_key,
            api_base=settings.api_base,
            timeout=settings.timeout,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, str] | None = None,
    ) -> object:
        url = f"{self._api_base}/{path.lstrip('/')}"

        def _do_request() -> object:
            log.debug("Challonge %s %s %s", method, url, data or "")
            response = self._session.request(
                method,
                url,
                data=data,
                auth=self._auth,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError:
                return {"raw": response.text}

        try:
            return await asyncio.to_thread(_do_request)
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            errors = _error_messages(exc.response)
            log.debug("Challonge %s %s failed: status=%s", method, url, status)
            if errors:
                raise RemoteRejectedError(errors, status=status) from exc
            if status is None or status >= 500:
                raise RemoteUnavailableError(
                    f"Challonge request failed with status {status}"
                ) from exc
            raise RemoteRejectedError(
                [f"Challonge request failed with status {status}"], status=status
            ) from exc
        except requests.Timeout as exc:
            raise RemoteUnavailableError("Challonge request timed out") from exc
        except requests.RequestException as exc:
            raise RemoteUnavailableError(f"Challonge request failed: {exc}") from exc

    async def create_tournament(self, name: str, bracket_format: str) -> BracketLink:
        response = await self._request(
            "POST",
            "/tournaments.json",
            data={
                "tournament[name]": name,
                "tournament[tournament_type]": bracket_format,
                "tournament[url]": tournament_slug(name),
            },
        )
        tournament = _unwrap(response, "tournament")
        if "id" not in tournament:
            raise RemoteRejectedError(["Challonge did not return a tournament id"])
        return BracketLink(
            provider_id=str(tournament["id"]),
            bracket_format=str(tournament.get("tournament_type") or bracket_format),
            url=_optional_id(tournament.get("full_challonge_url")),
        )

    async def add_participant(self, remote_tournament_id: str, team: Team) -> str:
        response = await self._request(
            "POST",
            f"/tournaments/{remote_tournament_id}/participants.json",
            data={
                "participant[name]": _NAME_SEPARATOR.join(
                    member.display_name for member in team.members
                ),
                "participant[misc]": _MISC_SEPARATOR.join(team.member_ids),
            },
        )
        participant = _unwrap(response, "participant")
        if "id" not in participant:
            raise RemoteRejectedError(["Challonge did not return a participant id"])
        return str(participant["id"])

    async def remove_participant(
        self, remote_tournament_id: str, remote_participant_id: str
    ) -> None:
        await self._request(
            "DELETE",
            f"/tournaments/{remote_tournament_id}/participants/{remote_participant_id}.json",
        )

    async def start_tournament(self, remote_tournament_id: str) -> None:
        await self._request("POST", f"/tournaments/{remote_tournament_id}/start.json")

    async def mark_match_underway(
        self, remote_tournament_id: str, remote_match_id: str
    ) -> None:
        await self._request(
            "POST",
            f"/tournaments/{remote_tournament_id}/matches/{remote_match_id}/mark_as_underway.json",
        )

    async def report_match_result(
        self, remote_tournament_id: str, remote_match_id: str, winner_side: int
    ) -> None:
        if winner_side not in (1, 2):
            raise ValueError("winner_side must be 1 or 2")
        path = f"/tournaments/{remote_tournament_id}/matches/{remote_match_id}.json"
        match = _parse_match(_unwrap(await self._request("GET", path), "match"))
        winner_id = match.player1_id if winner_side == 1 else match.player2_id
        if winner_id is None:
            raise RemoteRejectedError(
                [f"Match {remote_match_id} has no participant in slot {winner_side}"]
            )
        await self._request(
            "PUT",
            path,
            data={
                "match[winner_id]": winner_id,
                "match[scores_csv]": "1-0" if winner_side == 1 else "0-1",
            },
        )

    async def finalize_tournament(
        self, remote_tournament_id: str, final_rankings: Sequence[Team]
    ) -> None:
        # Challonge derives final ranks from the bracket itself.
        log.debug(
            "Finalizing %s; %d local rankings are not sent",
            remote_tournament_id,
            len(final_rankings),
        )
        await self._request(
            "POST", f"/tournaments/{remote_tournament_id}/finalize.json"
        )

    async def fetch_full_state(self, remote_tournament_id: str) -> RemoteState:
        participants_raw = await self._request(
            "GET", f"/tournaments/{remote_tournament_id}/participants.json"
        )
        matches_raw = await self._request(
            "GET", f"/tournaments/{remote_tournament_id}/matches.json"
        )
        if not isinstance(participants_raw, list) or not isinstance(
            matches_raw, list
        ):
            raise RemoteRejectedError(
                [f"Unexpected Challonge payload for tournament {remote_tournament_id}"]
            )
        return RemoteState(
            participants=[
                _parse_participant(_unwrap(entry, "participant"))
                for entry in participants_raw
            ],
            matches=[_parse_match(_unwrap(entry, "match")) for entry in matches_raw],
        )


__all__ = ["ChallongeClient", "tournament_slug"]
