"""
Roster submission and lineup preview.
Preview and settlement share fantasy_scoring.resolve_multiplier so a live
preview and the settled score always agree.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from playoff_league.fantasy_scoring import resolve_multiplier
from playoff_league.models import (
    ROSTER_SLOTS,
    SLOT_POSITIONS,
    InvalidRowError,
    Roster,
    RosterSlotAssignment,
    Slot,
    build_lineup,
    parse_slot,
)
from playoff_league.persistence.db import transaction
from playoff_league.persistence.repositories import (
    PlayerRepository,
    RosterRepository,
    RosterSpotScoreRepository,
    RoundRepository,
    StatLineRepository,
)
from playoff_league.services.round_service import RoundService

_log = logging.getLogger("playoff_league.rosters")


@dataclass
class SlotPreview:
    slot: Slot
    player_id: str | None
    player_name: str | None
    base_points: Decimal | None
    multiplier: int
    settled: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot": self.slot.value,
            "player_id": self.player_id,
            "player_name": self.player_name,
            "base_points": float(self.base_points) if self.base_points is not None else None,
            "multiplier": self.multiplier,
            "settled": self.settled,
        }


class RosterService:
    def __init__(self) -> None:
        self._rounds = RoundService()
        self._round_repo = RoundRepository()
        self._roster_repo = RosterRepository()
        self._player_repo = PlayerRepository()
        self._stat_repo = StatLineRepository()
        self._score_repo = RosterSpotScoreRepository()

    def get_or_create_roster(self, conn: sqlite3.Connection, user_id: str, round_id: str) -> Roster:
        """
        Existing roster, or a new one seeded from the user's previous-round lineup.
        Players no longer eligible for this round are dropped from the copy.
        """
        roster = self._roster_repo.get(conn, user_id, round_id)
        if roster is not None:
            return roster
        round_ = self._rounds.get_round(conn, round_id)
        prev_round = self._round_repo.get_by_number(conn, round_.round_number - 1)
        prev_roster = self._roster_repo.get(conn, user_id, prev_round.id) if prev_round else None
        copied: dict[Slot, str | None] = {}
        if prev_roster is not None:
            prev_lineup = self._roster_repo.get_lineup(conn, prev_roster.id)
            players = self._player_repo.get_many(conn, [p for p in prev_lineup.values() if p])
            copied = {
                slot: pid if pid in players and players[pid].is_eligible_for(round_.round_number) else None
                for slot, pid in prev_lineup.items()
            }
        with transaction(conn):
            roster = self._roster_repo.insert(conn, user_id, round_id)
            if copied:
                self._roster_repo.upsert_slots(conn, roster.id, copied)
        if copied:
            _log.info(
                "Roster for user %s round %s seeded from round %s (%d players kept)",
                user_id, round_.round_number, prev_round.round_number,
                sum(1 for p in copied.values() if p),
            )
        return roster

    def get_lineup(self, conn: sqlite3.Connection, roster_id: str) -> dict[Slot, str | None]:
        return self._roster_repo.get_lineup(conn, roster_id)

    def save_roster(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        round_id: str,
        lineup: Mapping[str, str | None],
    ) -> dict[Slot, str | None]:
        """
        Replace the user's lineup for the round. Slots not given are emptied.
        Refuses a locked round, unknown slots/players, wrong positions, ineligible
        players, and a player in more than one slot.
        """
        round_ = self._rounds.assert_can_edit_roster(conn, round_id)
        assignments: list[RosterSlotAssignment] = []
        seen_slots: set[Slot] = set()
        for key, player_id in lineup.items():
            slot = parse_slot(key)
            if slot in seen_slots:
                raise InvalidRowError(f"Slot {slot.value} given more than once")
            seen_slots.add(slot)
            assignments.append(
                RosterSlotAssignment(roster_id=f"{user_id}/{round_id}", slot=slot, player_id=player_id or None)
            )
        full = build_lineup(assignments)

        players = self._player_repo.get_many(conn, [p for p in full.values() if p])
        for slot, player_id in full.items():
            if player_id is None:
                continue
            player = players.get(player_id)
            if player is None:
                raise InvalidRowError(f"Player not found: {player_id}")
            if player.position not in SLOT_POSITIONS[slot]:
                raise InvalidRowError(
                    f"{player.name} ({player.position}) cannot fill {slot.value}; "
                    f"allowed: {', '.join(sorted(SLOT_POSITIONS[slot]))}"
                )
            if not player.is_eligible_for(round_.round_number):
                raise InvalidRowError(
                    f"{player.name} ({player.team}) was eliminated and is not eligible for round {round_.round_number}"
                )

        roster = self._roster_repo.get(conn, user_id, round_id)
        with transaction(conn):
            if roster is None:
                roster = self._roster_repo.insert(conn, user_id, round_id)
            self._roster_repo.upsert_slots(conn, roster.id, full)
        return full

    def preview_lineup(self, conn: sqlite3.Connection, user_id: str, round_id: str) -> list[SlotPreview]:
        """
        Per-slot player, base points and multiplier for the user's round lineup.
        Locked rounds read the multiplier from the settled score row when one exists;
        otherwise it comes from the live roster history. An eliminated player
        previews at 0 base points, as settlement scores them.
        """
        round_ = self._rounds.get_round(conn, round_id)
        roster = self._roster_repo.get(conn, user_id, round_id)
        lineup = self._roster_repo.get_lineup(conn, roster.id) if roster else {s: None for s in ROSTER_SLOTS}
        history = self._roster_repo.history_for_user(conn, user_id)
        settled = self._score_repo.list_for_user_round(conn, user_id, round_id) if round_.is_locked else {}
        stat_points = self._stat_repo.points_for_round(conn, round_id)
        players = self._player_repo.get_many(conn, [p for p in lineup.values() if p])

        previews: list[SlotPreview] = []
        for slot in ROSTER_SLOTS:
            player_id = lineup.get(slot)
            score = settled.get(slot)
            if player_id is None:
                previews.append(SlotPreview(slot, None, None, None, 1, score is not None))
                continue
            player = players.get(player_id)
            if score is not None:
                base = score.base_points
            elif player is not None and not player.is_eligible_for(round_.round_number):
                base = Decimal(0)
            else:
                base = stat_points.get(player_id)
            previews.append(SlotPreview(
                slot=slot,
                player_id=player_id,
                player_name=player.name if player else None,
                base_points=base,
                multiplier=resolve_multiplier(history, player_id, round_.round_number, settled=score),
                settled=score is not None,
            ))
        return previews
