#!/usr/bin/env python3
"""Rebuild stored tournaments from their Challonge brackets.

Loads every tournament of a guild from DynamoDB, fetches the participants and
matches of each linked bracket and replaces the stored roster and match log
with them. By default it performs no writes (dry-run). Pass ``--execute`` once
you are satisfied with the planned changes.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:  # pragma: no cover - simple environment setup
    sys.path.insert(0, str(ROOT_DIR))

from tournament_engine import RemoteError, Tournament
from tournament_engine.challonge import ChallongeClient
from tournament_engine.config import read_challonge_settings, read_storage_settings
from tournament_engine.storage import TournamentStorage

log = logging.getLogger(__name__)


@dataclass(slots=True)
class RebuildSummary:
    tournament_id: str
    name: str
    teams_before: int
    teams_after: int
    matches_before: int
    matches_after: int


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--table",
        help="DynamoDB table name (defaults to TOURNAMENT_TABLE_NAME)",
    )
    parser.add_argument(
        "--guild",
        type=int,
        required=True,
        dest="guild_id",
        help="Guild id whose tournaments should be rebuilt",
    )
    parser.add_argument(
        "--tournament",
        action="append",
        dest="tournaments",
        help="Optional tournament id or name filter (repeatable)",
    )
    parser.add_argument(
        "--profile",
        help="Optional AWS profile to use",
    )
    parser.add_argument(
        "--region",
        help="AWS region (defaults to AWS_REGION)",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Save rebuilt tournaments instead of printing the planned changes",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def should_include(tournament: Tournament, selected: Sequence[str] | None) -> bool:
    if not selected:
        return True
    wanted = {entry.lower() for entry in selected}
    return (
        tournament.tournament_id.lower() in wanted
        or tournament.name.lower() in wanted
    )


async def rebuild_all(
    tournaments: Sequence[Tournament],
    selected: Sequence[str] | None = None,
) -> list[RebuildSummary]:
    summaries: list[RebuildSummary] = []
    for tournament in tournaments:
        if not should_include(tournament, selected):
            continue
        if not tournament.is_bracket_linked:
            log.info("Skipping %s: no linked bracket", tournament.name)
            continue
        teams_before = len(tournament.teams)
        matches_before = len(tournament.matches)
        try:
            await tournament.rebuild_index()
        except RemoteError as exc:
            log.error("Could not rebuild %s: %s", tournament.name, exc)
            continue
        summaries.append(
            RebuildSummary(
                tournament_id=tournament.tournament_id,
                name=tournament.name,
                teams_before=teams_before,
                teams_after=len(tournament.teams),
                matches_before=matches_before,
                matches_after=len(tournament.matches),
            )
        )
    return summaries


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    dry_run = not args.execute

    storage_settings = read_storage_settings()
    table_name = args.table or storage_settings.table_name
    region = args.region or storage_settings.region
    if not table_name:
        raise SystemExit("No DynamoDB table specified and TOURNAMENT_TABLE_NAME unset")

    challonge_settings = read_challonge_settings()
    if challonge_settings is None:
        raise SystemExit("CHALLONGE_USERNAME and CHALLONGE_API_KEY must be set")
    client = ChallongeClient.from_settings(challonge_settings)

    session_kwargs: dict[str, Any] = {"region_name": region}
    if args.profile:
        session_kwargs["profile_name"] = args.profile
    session = boto3.Session(**session_kwargs)
    storage = TournamentStorage(session.resource("dynamodb").Table(table_name))

    try:
        tournaments = storage.list_tournaments(args.guild_id, client)
        summaries = asyncio.run(rebuild_all(tournaments, args.tournaments))
        by_id = {tournament.tournament_id: tournament for tournament in tournaments}
        for summary in summaries:
            log.info(
                "%s %s: teams %d -> %d, matches %d -> %d",
                "Would rebuild" if dry_run else "Rebuilt",
                summary.name,
                summary.teams_before,
                summary.teams_after,
                summary.matches_before,
                summary.matches_after,
            )
            if not dry_run:
                storage.save_tournament(args.guild_id, by_id[summary.tournament_id])
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network failure
        log.error("AWS request failed: %s", exc)
        raise SystemExit(2) from exc

    log.info(
        "%s complete. Tournaments rebuilt: %d",
        "Dry-run" if dry_run else "Execution",
        len(summaries),
    )


if __name__ == "__main__":
    main()
