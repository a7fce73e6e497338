"""
Team Balancing Engine for Rematch

This module splits a pool of unassigned players into two groups of fixed
sizes so that, added on top of the teams' existing totals, the two final
team scores are as close as possible.

Two strategies are available:
- Exact: enumerate every way to pick team A's newcomers (small pools)
- Greedy: walk the pool by descending score, feeding the weaker team

Usage:
    from rematch.balance import balance
    group_a, group_b = balance(pool, need_a, need_b, total_a, total_b)
"""

from dataclasses import dataclass
from itertools import combinations
from typing import Iterator, Sequence

from rematch.config import EXACT_SEARCH_MAX_POOL
from rematch.utils import setup_logging

# --- Module Logger ---
logger = setup_logging(__name__)


class BalanceError(Exception):
    """Base exception for balancing errors"""
    pass


class EmptyPoolError(BalanceError):
    """Raised when there are no unassigned players left to balance"""
    pass


class OverfilledTeamsError(BalanceError):
    """Raised when a team already holds more players than its target size"""
    pass


class PartitionMismatchError(BalanceError):
    """Raised when the requested group sizes do not add up to the pool size"""
    pass


class UnknownPlayerError(BalanceError, KeyError):
    """Raised when a player id is not part of the session"""
    pass


@dataclass(frozen=True)
class Candidate:
    """A player eligible for team assignment."""
    player_id: str
    score: float
    name: str | None = None


def validate_request(pool_size: int, need_a: int, need_b: int) -> None:
    """
    Check a partition request before any groups are built.

    Raises:
        OverfilledTeamsError: If either requested size is negative
        PartitionMismatchError: If the sizes do not sum to the pool size
    """
    if need_a < 0 or need_b < 0:
        raise OverfilledTeamsError("Teams are overfilled! Remove some players first.")

    if need_a + need_b != pool_size:
        raise PartitionMismatchError(
            f"Math error: need {need_a + need_b} players but have {pool_size} available"
        )


def iter_combinations(n: int, k: int) -> Iterator[tuple[int, ...]]:
    """Yield every k-subset of range(n) as an index tuple, in lexicographic order."""
    yield from combinations(range(n), k)


def team_score(group: Sequence[Candidate], current_total: float = 0.0) -> float:
    """Existing team total plus the scores of the newcomers."""
    return current_total + sum(c.score for c in group)


def partition_difference(group_a, group_b, current_total_a=0.0, current_total_b=0.0) -> float:
    """Absolute difference between the two final team totals."""
    return abs(team_score(group_a, current_total_a) - team_score(group_b, current_total_b))


def exact_partition(pool, need_a, need_b, current_total_a=0.0, current_total_b=0.0):
    """
    Find the globally optimal split by trying every group A of size need_a.

    Group B is always the complement of group A, in pool order. Ties keep
    the first partition found; a perfect split (difference 0) stops the search.

    Returns:
        Tuple of (group_a, group_b) as new lists

    Raises:
        OverfilledTeamsError, PartitionMismatchError: On an invalid request
    """
    validate_request(len(pool), need_a, need_b)
    n = len(pool)
    best_diff = float('inf')
    best_a: list[Candidate] = []
    best_b: list[Candidate] = []
    evaluated = 0

    for indices in iter_combinations(n, need_a):
        evaluated += 1
        chosen = set(indices)
        group_a = [pool[i] for i in indices]
        group_b = [pool[i] for i in range(n) if i not in chosen]

        diff = partition_difference(group_a, group_b, current_total_a, current_total_b)
        if diff < best_diff:
            best_diff = diff
            best_a, best_b = group_a, group_b
            if diff == 0:
                break

    logger.debug(f"Exact search evaluated {evaluated} partitions, best difference {best_diff:.2f}")
    return best_a, best_b


def greedy_partition(pool, need_a, need_b, current_total_a=0.0, current_total_b=0.0):
    """
    Assign players by descending score to whichever team is currently weaker.

    Ties in running total go to team A. Once a team has all the players it
    needs, everyone left goes to the other team.

    Returns:
        Tuple of (group_a, group_b) as new lists

    Raises:
        OverfilledTeamsError, PartitionMismatchError: On an invalid request
    """
    validate_request(len(pool), need_a, need_b)
    ordered = sorted(pool, key=lambda c: c.score, reverse=True)
    group_a: list[Candidate] = []
    group_b: list[Candidate] = []
    total_a = current_total_a
    total_b = current_total_b

    for candidate in ordered:
        if len(group_a) < need_a and len(group_b) < need_b:
            if total_a <= total_b:
                group_a.append(candidate)
                total_a += candidate.score
            else:
                group_b.append(candidate)
                total_b += candidate.score
        elif len(group_a) < need_a:
            group_a.append(candidate)
            total_a += candidate.score
        else:
            group_b.append(candidate)
            total_b += candidate.score

    logger.debug(f"Greedy walk finished with difference {abs(total_a - total_b):.2f}")
    return group_a, group_b


def choose_strategy(pool_size: int):
    """Exact search for pools up to EXACT_SEARCH_MAX_POOL players, greedy above."""
    if pool_size <= EXACT_SEARCH_MAX_POOL:
        return exact_partition
    return greedy_partition


def balance(pool, need_a, need_b, current_total_a=0.0, current_total_b=0.0):
    """
    Split an unassigned pool into two groups of the requested sizes.

    Args:
        pool: Sequence of Candidate (anything exposing a numeric `score`)
        need_a: Number of players team A still needs
        need_b: Number of players team B still needs
        current_total_a: Score total of the players already on team A
        current_total_b: Score total of the players already on team B

    Returns:
        Tuple of (group_a, group_b); together they hold every pool member once

    Raises:
        OverfilledTeamsError, PartitionMismatchError: On an invalid request
    """
    pool = list(pool)
    validate_request(len(pool), need_a, need_b)

    strategy = choose_strategy(len(pool))
    logger.debug(f"Balancing {len(pool)} players ({need_a} + {need_b}) with {strategy.__name__}")
    return strategy(pool, need_a, need_b, current_total_a, current_total_b)
