"""
Single-elimination bracket engine.

Pure functions over immutable ``Bracket`` values: no I/O, no clock, and
randomness only through the caller-supplied seed.

Shape rules
─────────────────────────────────────────────────────────────────
- rounds = ceil(log2(n)) for n participants
- round 1 has 2^(rounds-1) slots, filled two players per slot in
  shuffled order; trailing slots may hold one player or none
- round r has half the slots of round r-1; the final has exactly one
- the winner of slot n in round r moves to slot ceil(n/2) of round r+1,
  as player1 when n is odd and player2 when n is even
─────────────────────────────────────────────────────────────────

Byes
─────────────────────────────────────────────────────────────────
A seat is *dead* when nobody can ever sit in it: an empty round-1 seat,
or a later seat whose feeder slot is *void* (both of its own seats dead).
``resolve_byes`` gives every player facing a dead seat a walkover: the
slot records them as winner with status "bye" and they move on. One bye
can create the next, so resolution repeats until nothing changes.
─────────────────────────────────────────────────────────────────
"""

import random
from dataclasses import replace
from typing import Sequence

from chess_arena.tournament.models import (
    BYE_STATUS,
    AdvanceResult,
    Bracket,
    BracketRound,
    BracketSlot,
    NextMatchRequest,
)
from chess_arena.utils.errors import BracketInvariantError, InsufficientParticipantsError


def round_count_for(participant_count: int) -> int:
    """ceil(log2(n)) for n >= 2."""
    return (participant_count - 1).bit_length()


def seeded_shuffle(items: Sequence[str], seed: int) -> list[str]:
    """Fisher-Yates shuffle driven by ``random.Random(seed)``."""
    rng = random.Random(seed)
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class BracketEngine:
    """Builds and advances single-elimination brackets."""

    def build_single_elimination(
        self,
        participant_ids: Sequence[str],
        seed: int,
    ) -> Bracket:
        """Shuffle participants and lay out every round.

        Raises:
            InsufficientParticipantsError: fewer than two participants
            BracketInvariantError: duplicate participant ids
        """
        if len(participant_ids) < 2:
            raise InsufficientParticipantsError(len(participant_ids))
        if len(set(participant_ids)) != len(participant_ids):
            raise BracketInvariantError("Participant ids must be unique")

        players = seeded_shuffle(participant_ids, seed)
        rounds = round_count_for(len(players))
        first_round_slots = 2 ** (rounds - 1)

        first_round = []
        for index in range(first_round_slots):
            pair = players[index * 2:index * 2 + 2]
            first_round.append(
                BracketSlot(
                    match_number=index + 1,
                    player1_id=pair[0] if len(pair) > 0 else None,
                    player2_id=pair[1] if len(pair) > 1 else None,
                )
            )

        bracket_rounds = [BracketRound(round_number=1, matches=tuple(first_round))]
        slot_count = first_round_slots
        for round_number in range(2, rounds + 1):
            slot_count = (slot_count + 1) // 2
            bracket_rounds.append(
                BracketRound(
                    round_number=round_number,
                    matches=tuple(BracketSlot(match_number=n) for n in range(1, slot_count + 1)),
                )
            )

        return Bracket(rounds=tuple(bracket_rounds))

    def advance(
        self,
        bracket: Bracket,
        round_number: int,
        match_number: int,
        winner_id: str,
        match_status: str,
    ) -> AdvanceResult:
        """Record ``winner_id`` for a slot and feed them into the next round.

        Re-applying the same winner is a no-op that yields the same bracket.

        Raises:
            SlotNotFoundError: coordinates outside the bracket
            BracketInvariantError: winner is not in the slot, the slot already
                has a different winner, or the target seat is taken
        """
        slot = bracket.get_slot(round_number, match_number)
        if winner_id not in slot.players:
            raise BracketInvariantError(
                "Winner is not a player of this slot",
                details={"round": round_number, "matchNumber": match_number, "winner": winner_id},
            )
        if slot.winner_id is not None and slot.winner_id != winner_id:
            raise BracketInvariantError(
                "Slot already has a different winner",
                details={"round": round_number, "matchNumber": match_number, "winner": slot.winner_id},
            )

        bracket = bracket.with_slot(
            round_number,
            replace(slot, winner_id=winner_id, status=match_status),
        )

        if bracket.is_last_round(round_number):
            return AdvanceResult(bracket=bracket, next_match=None, is_final=True)

        bracket, target = self._place_winner(bracket, round_number, match_number, winner_id)

        next_match = None
        if target.is_ready:
            next_match = NextMatchRequest(
                round=round_number + 1,
                match_number=target.match_number,
                player1_id=target.player1_id,
                player2_id=target.player2_id,
            )
        return AdvanceResult(bracket=bracket, next_match=next_match, is_final=False)

    def resolve_byes(self, bracket: Bracket) -> Bracket:
        """Walk every unopposed player forward until no bye remains."""
        changed = True
        while changed:
            changed = False
            for round_number, slot in bracket.slots():
                if slot.is_decided or slot.match_id is not None:
                    continue
                bye_player = self._bye_player(bracket, round_number, slot)
                if bye_player is None:
                    continue
                bracket = self.advance(
                    bracket, round_number, slot.match_number, bye_player, BYE_STATUS
                ).bracket
                changed = True
                break
        return bracket

    def ready_slots(self, bracket: Bracket) -> list[NextMatchRequest]:
        """Every fully paired slot still waiting for its game."""
        return [
            NextMatchRequest(
                round=round_number,
                match_number=slot.match_number,
                player1_id=slot.player1_id,
                player2_id=slot.player2_id,
            )
            for round_number, slot in bracket.slots()
            if slot.is_ready
        ]

    def assign_match(
        self,
        bracket: Bracket,
        round_number: int,
        match_number: int,
        match_id: int,
        status: str = "pending",
    ) -> Bracket:
        """Point a slot at the game that decides it."""
        slot = bracket.get_slot(round_number, match_number)
        return bracket.with_slot(round_number, replace(slot, match_id=match_id, status=status))

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _place_winner(
        bracket: Bracket,
        round_number: int,
        match_number: int,
        winner_id: str,
    ) -> tuple[Bracket, BracketSlot]:
        target_round = round_number + 1
        target = bracket.get_slot(target_round, (match_number + 1) // 2)
        seat_field = "player1_id" if match_number % 2 == 1 else "player2_id"
        occupant = getattr(target, seat_field)

        if occupant is not None and occupant != winner_id:
            raise BracketInvariantError(
                "Target seat already taken",
                details={
                    "round": target_round,
                    "matchNumber": target.match_number,
                    "occupant": occupant,
                    "winner": winner_id,
                },
            )

        target = replace(target, **{seat_field: winner_id})
        return bracket.with_slot(target_round, target), target

    def _bye_player(self, bracket: Bracket, round_number: int, slot: BracketSlot) -> str | None:
        """The lone player of ``slot`` if their opponent's seat is dead."""
        if len(slot.players) != 1:
            return None
        empty_seat = 2 if slot.player1_id is not None else 1
        if self._seat_is_dead(bracket, round_number, slot.match_number, empty_seat):
            return slot.players[0]
        return None

    def _seat_is_dead(
        self,
        bracket: Bracket,
        round_number: int,
        match_number: int,
        seat_number: int,
    ) -> bool:
        slot = bracket.get_slot(round_number, match_number)
        if slot.seat(seat_number) is not None:
            return False
        if round_number == 1:
            return True
        feeder = match_number * 2 - 2 + seat_number
        return self._slot_is_void(bracket, round_number - 1, feeder)

    def _slot_is_void(self, bracket: Bracket, round_number: int, match_number: int) -> bool:
        slot = bracket.get_slot(round_number, match_number)
        if slot.is_decided:
            return False
        return self._seat_is_dead(bracket, round_number, match_number, 1) and self._seat_is_dead(
            bracket, round_number, match_number, 2
        )
