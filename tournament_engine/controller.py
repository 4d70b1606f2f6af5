from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Final

from .bracket_client import MutationResult
from .errors import InvalidTransitionError
from .tournament import Tournament

log: Final = logging.getLogger("tournament-engine")


class TournamentController:
    """Owns every tournament of a guild and the currently selected one."""

    def __init__(
        self,
        tournaments: Iterable[Tournament] = (),
        selected: Tournament | None = None,
    ) -> None:
        self._tournaments: list[Tournament] = list(tournaments)
        self._selected: Tournament | None = None
        self._lock = asyncio.Lock()
        if selected is not None:
            self._assert_present(selected)
            self._selected = selected

    @property
    def tournaments(self) -> tuple[Tournament, ...]:
        return tuple(self._tournaments)

    @property
    def selected(self) -> Tournament | None:
        return self._selected

    @property
    def is_tourney_active(self) -> bool:
        selected = self._selected
        return selected is not None and selected.state == "active"

    def get(self, index: int) -> Tournament:
        """Return the tournament at 1-based ``index``."""
        if index < 1 or index > len(self._tournaments):
            raise IndexError(
                f"{index} is out of range; it should be between 1 and "
                f"{len(self._tournaments)} inclusive."
            )
        return self._tournaments[index - 1]

    async def add_tournament(self, tournament: Tournament) -> int:
        async with self._lock:
            self._tournaments.append(tournament)
            index = len(self._tournaments)
        log.info("Created tournament %s (#%d)", tournament.name, index)
        return index

    async def remove_tournament(self, tournament: Tournament) -> bool:
        async with self._lock:
            for index, entry in enumerate(self._tournaments):
                if entry is tournament:
                    del self._tournaments[index]
                    break
            else:
                return False
            if self._selected is tournament:
                self._selected = None
        log.info("Deleted tournament %s", tournament.name)
        return True

    async def select(self, tournament: Tournament | None) -> None:
        async with self._lock:
            if tournament is not None:
                self._assert_present(tournament)
            self._selected = tournament

    async def select_index(self, index: int) -> Tournament:
        async with self._lock:
            tournament = self.get(index)
            self._selected = tournament
        return tournament

    async def start_tournament(self, tournament: Tournament) -> MutationResult:
        async with self._lock:
            self._assert_present(tournament)
        if tournament.state != "pending":
            raise InvalidTransitionError(
                f"The tournament {tournament.name} has already been started."
            )
        return await tournament.start()

    def _assert_present(self, tournament: Tournament) -> None:
        assert any(
            entry is tournament for entry in self._tournaments
        ), f"{tournament.name} is not managed by this controller"


__all__ = ["TournamentController"]
