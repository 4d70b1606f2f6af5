from __future__ import annotations

import logging
from typing import ClassVar, Final

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from .bracket_client import BracketClient
from .controller import TournamentController
from .models import utc_now_iso
from .tournament import Tournament

log: Final = logging.getLogger("tournament-engine.storage")


class TournamentStorage:
    """Persists a guild's tournaments and selection in a DynamoDB table."""

    SELECTION_SK: ClassVar[str] = "SELECTION"

    def __init__(self, table) -> None:
        self._table = table

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Tournament table is not configured")

    # ----- Tournaments -----
    def save_tournament(self, guild_id: int, tournament: Tournament) -> None:
        self.ensure_table()
        self._table.put_item(Item=tournament.to_item(guild_id))

    def get_tournament(
        self,
        guild_id: int,
        tournament_id: str,
        bracket_client: BracketClient | None = None,
    ) -> Tournament | None:
        self.ensure_table()
        resp = self._table.get_item(
            Key={
                "pk": Tournament.PK_TEMPLATE % guild_id,
                "sk": Tournament.SK_TEMPLATE % tournament_id,
            }
        )
        item = resp.get("Item")
        if not item:
            return None
        return Tournament.from_item(item, bracket_client)

    def list_tournaments(
        self, guild_id: int, bracket_client: BracketClient | None = None
    ) -> list[Tournament]:
        self.ensure_table()
        kwargs: dict[str, object] = {
            "KeyConditionExpression": Key("pk").eq(Tournament.PK_TEMPLATE % guild_id)
            & Key("sk").begins_with(Tournament.SK_TEMPLATE % ""),
            "Select": "ALL_ATTRIBUTES",
        }
        items: list[dict[str, object]] = []
        while True:
            resp = self._table.query(**kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        items.sort(key=lambda item: (str(item.get("created_at", "")), str(item["sk"])))
        return [Tournament.from_item(item, bracket_client) for item in items]

    def delete_tournament(self, guild_id: int, tournament_id: str) -> bool:
        self.ensure_table()
        try:
            self._table.delete_item(
                Key={
                    "pk": Tournament.PK_TEMPLATE % guild_id,
                    "sk": Tournament.SK_TEMPLATE % tournament_id,
                },
                ConditionExpression="attribute_exists(pk)",
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                return False
            raise
        return True

    # ----- Selection -----
    def save_selection(self, guild_id: int, tournament: Tournament | None) -> None:
        self.ensure_table()
        item: dict[str, object] = {
            "pk": Tournament.PK_TEMPLATE % guild_id,
            "sk": self.SELECTION_SK,
            "updated_at": utc_now_iso(),
        }
        if tournament is not None:
            item["tournament_id"] = tournament.tournament_id
        self._table.put_item(Item=item)

    def get_selection(self, guild_id: int) -> str | None:
        self.ensure_table()
        resp = self._table.get_item(
            Key={"pk": Tournament.PK_TEMPLATE % guild_id, "sk": self.SELECTION_SK}
        )
        item = resp.get("Item")
        if not item or not item.get("tournament_id"):
            return None
        return str(item["tournament_id"])

    # ----- Controller -----
    def save_controller(self, guild_id: int, controller: TournamentController) -> None:
        for tournament in controller.tournaments:
            self.save_tournament(guild_id, tournament)
        self.save_selection(guild_id, controller.selected)

    def load_controller(
        self, guild_id: int, bracket_client: BracketClient | None = None
    ) -> TournamentController:
        tournaments = self.list_tournaments(guild_id, bracket_client)
        selected_id = self.get_selection(guild_id)
        selected = next(
            (entry for entry in tournaments if entry.tournament_id == selected_id),
            None,
        )
        if selected_id is not None and selected is None:
            log.warning(
                "Selected tournament %s no longer exists in guild %s",
                selected_id,
                guild_id,
            )
        return TournamentController(tournaments, selected=selected)


__all__ = ["TournamentStorage"]
