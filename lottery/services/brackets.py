from __future__ import annotations

from typing import List

BRACKET_COUNT = 6
BASIS_POINTS = 10000

MIN_COMBINATION = 1000000
MAX_COMBINATION = 1999999

# keys of bracket j live in [offset_j, offset_j + 10**(j+1)), disjoint across brackets
BRIDGE_OFFSETS = (1, 11, 111, 1111, 11111, 111111)


def is_valid_combination(combination: int) -> bool:
    return MIN_COMBINATION <= combination <= MAX_COMBINATION


def suffix(number: int, bracket: int) -> int:
    return number % (10 ** (bracket + 1))


def bridge_key(number: int, bracket: int) -> int:
    return BRIDGE_OFFSETS[bracket] + suffix(number, bracket)


def bridge_keys(combination: int) -> List[int]:
    return [bridge_key(combination, bracket) for bracket in range(BRACKET_COUNT)]


def matches(combination: int, final_number: int, bracket: int) -> bool:
    return bridge_key(combination, bracket) == bridge_key(final_number, bracket)


def highest_matching_bracket(combination: int, final_number: int) -> int:
    """Highest bracket whose suffix matches, -1 when even the last digit differs."""
    best = -1
    for bracket in range(BRACKET_COUNT):
        if not matches(combination, final_number, bracket):
            break
        best = bracket
    return best


def normalise_final_number(raw: int) -> int:
    return MIN_COMBINATION + (int(raw) % (MAX_COMBINATION - MIN_COMBINATION + 1))
