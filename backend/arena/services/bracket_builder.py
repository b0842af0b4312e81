"""
Bracket Builder: pure generation of single and double elimination match graphs.

No database access. The builder returns in-memory BracketMatch records whose forward
references are sequence numbers (next_win_sequence / next_lose_sequence). The persister
turns those into real match ids once the rows exist.

Layout:
- Winner bracket rounds are generated from the final backwards; round r has
  2 ** (total_rounds - r) matches and match i feeds match i // 2 of round r + 1.
- Loser bracket (double elimination) has 2 * W - 2 rounds, in pairs of equal size.
  Odd rounds map 1:1 into the next round, even rounds merge 2:1.
- The winner bracket final and the loser bracket final both feed one grand final.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from arena.errors import BadRequestError, ErrorCode
from arena.models.match import BracketType

logger = logging.getLogger(__name__)

SINGLE_ELIMINATION = "single_elimination"
DOUBLE_ELIMINATION = "double_elimination"
BRACKET_KINDS = (SINGLE_ELIMINATION, DOUBLE_ELIMINATION)


@dataclass
class BracketParticipant:
    team_id: int
    seed: Optional[int] = None
    name: Optional[str] = None


@dataclass
class BracketMatch:
    round: int
    sequence: int
    bracket_type: str
    match_position: int
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    next_win_sequence: Optional[int] = None
    next_lose_sequence: Optional[int] = None
    # Filled in by the persister
    id: Optional[int] = None
    next_match_win_id: Optional[int] = None
    next_match_lose_id: Optional[int] = None

    @property
    def is_bye(self) -> bool:
        """Exactly one slot filled: the present team advances without playing."""
        return (self.team_a_id is None) != (self.team_b_id is None)


def seeding_order(bracket_size: int) -> List[int]:
    """
    Standard seeding positions for a bracket of the given power-of-two size.

    Seeds 1 and 2 land in opposite halves, so they can only meet in the final.
    For 8: [1, 8, 4, 5, 2, 7, 3, 6].
    """
    order = [1, 2]
    while len(order) < bracket_size:
        count = len(order) * 2
        order = [s for seed in order for s in (seed, count + 1 - seed)]
    return order[:bracket_size]


def _seeded(participants: Sequence[BracketParticipant]) -> List[BracketParticipant]:
    # Missing seeds default to list position; ties keep input order
    keyed = [
        (p.seed if p.seed is not None else index + 1, index, p)
        for index, p in enumerate(participants)
    ]
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [p for _, _, p in keyed]


class _SequenceCounter:
    def __init__(self) -> None:
        self._next = 0

    def take(self) -> int:
        value = self._next
        self._next += 1
        return value


def _check_participants(participants: Sequence[BracketParticipant]) -> None:
    if len(participants) < 2:
        raise BadRequestError(
            ErrorCode.BRACKET_NOT_ENOUGH_PARTICIPANTS,
            {"count": len(participants)},
        )


def _build_winner_bracket(
    participants: Sequence[BracketParticipant],
    counter: _SequenceCounter,
) -> Tuple[Dict[Tuple[int, int], BracketMatch], int, int]:
    """Returns ((round, position) -> match, total_rounds, bracket_size)."""
    total_rounds = max(1, math.ceil(math.log2(len(participants))))
    bracket_size = 2 ** total_rounds

    by_slot: Dict[Tuple[int, int], BracketMatch] = {}
    for rnd in range(total_rounds, 0, -1):
        for position in range(2 ** (total_rounds - rnd)):
            by_slot[(rnd, position)] = BracketMatch(
                round=rnd,
                sequence=counter.take(),
                bracket_type=BracketType.winner.value,
                match_position=position,
            )

    for (rnd, position), match in by_slot.items():
        if rnd < total_rounds:
            match.next_win_sequence = by_slot[(rnd + 1, position // 2)].sequence

    seeded = _seeded(participants)
    order = seeding_order(bracket_size)
    for position in range(bracket_size // 2):
        match = by_slot[(1, position)]
        seed_a = order[position * 2]
        seed_b = order[position * 2 + 1]
        if seed_a <= len(seeded):
            match.team_a_id = seeded[seed_a - 1].team_id
        if seed_b <= len(seeded):
            match.team_b_id = seeded[seed_b - 1].team_id

    return by_slot, total_rounds, bracket_size


def _ordered(by_slot: Dict[Tuple[int, int], BracketMatch]) -> List[BracketMatch]:
    return sorted(by_slot.values(), key=lambda m: m.sequence)


def build_single_elimination(participants: Sequence[BracketParticipant]) -> List[BracketMatch]:
    _check_participants(participants)
    counter = _SequenceCounter()
    by_slot, total_rounds, bracket_size = _build_winner_bracket(participants, counter)
    logger.debug(
        "Single elimination: %d entrants, bracket size %d, %d rounds",
        len(participants),
        bracket_size,
        total_rounds,
    )
    return _ordered(by_slot)


def loser_round_count(winner_rounds: int) -> int:
    return 2 * winner_rounds - 2


def loser_round_size(bracket_size: int, loser_round: int) -> int:
    return bracket_size // 2 ** (math.ceil(loser_round / 2) + 1)


def build_double_elimination(participants: Sequence[BracketParticipant]) -> List[BracketMatch]:
    _check_participants(participants)
    counter = _SequenceCounter()
    winners, total_rounds, bracket_size = _build_winner_bracket(participants, counter)

    loser_rounds = loser_round_count(total_rounds)
    losers: Dict[Tuple[int, int], BracketMatch] = {}
    for rnd in range(1, loser_rounds + 1):
        for position in range(loser_round_size(bracket_size, rnd)):
            losers[(rnd, position)] = BracketMatch(
                round=rnd,
                sequence=counter.take(),
                bracket_type=BracketType.loser.value,
                match_position=position,
            )

    grand_final = BracketMatch(
        round=total_rounds + 1,
        sequence=counter.take(),
        bracket_type=BracketType.grand_final.value,
        match_position=0,
    )

    winner_final = winners[(total_rounds, 0)]
    winner_final.next_win_sequence = grand_final.sequence

    if loser_rounds == 0:
        # Two entrants: the final is replayed as the grand final
        winner_final.next_lose_sequence = grand_final.sequence
    else:
        for (rnd, position), match in winners.items():
            if rnd == 1:
                match.next_lose_sequence = losers[(1, position // 2)].sequence
            else:
                match.next_lose_sequence = losers[(2 * (rnd - 1), position)].sequence

        for (rnd, position), match in losers.items():
            if rnd == loser_rounds:
                match.next_win_sequence = grand_final.sequence
            elif rnd % 2 == 1:
                match.next_win_sequence = losers[(rnd + 1, position)].sequence
            else:
                match.next_win_sequence = losers[(rnd + 1, position // 2)].sequence

    logger.debug(
        "Double elimination: %d entrants, %d winner rounds, %d loser rounds",
        len(participants),
        total_rounds,
        loser_rounds,
    )
    return _ordered(winners) + _ordered(losers) + [grand_final]


def build_bracket(participants: Sequence[BracketParticipant], kind: str) -> List[BracketMatch]:
    if kind == SINGLE_ELIMINATION:
        return build_single_elimination(participants)
    if kind == DOUBLE_ELIMINATION:
        return build_double_elimination(participants)
    raise BadRequestError(ErrorCode.VALIDATION_ERROR, {"field": "bracket_type", "value": kind})
