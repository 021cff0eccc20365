from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from app.services.scoring_calc import EmployeeScoreResult

TIER_DIAMOND = "Diamond"
TIER_GOLD = "Gold"
TIER_SILVER = "Silver"
TIER_BRONZE = "Bronze"


class TierPolicy(Protocol):
    def tier_for(self, rank: int, total: int) -> str: ...


class PositionalTierPolicy:
    """Fixed labels for the top three positions, Bronze for everyone else."""

    def tier_for(self, rank: int, total: int) -> str:
        if rank == 1:
            return TIER_DIAMOND
        if rank == 2:
            return TIER_GOLD
        if rank == 3:
            return TIER_SILVER
        return TIER_BRONZE


class ProportionalTierPolicy:
    """Tier by share of headcount: top 10% Diamond, 30% Gold, 60% Silver."""

    def __init__(self, diamond: float = 0.10, gold: float = 0.30, silver: float = 0.60) -> None:
        if not 0 < diamond <= gold <= silver <= 1:
            raise ValueError("tier cut-offs must be increasing fractions of headcount")
        self.diamond = diamond
        self.gold = gold
        self.silver = silver

    def tier_for(self, rank: int, total: int) -> str:
        if total <= 0:
            return TIER_BRONZE
        if rank <= max(1, math.ceil(total * self.diamond)):
            return TIER_DIAMOND
        if rank <= math.ceil(total * self.gold):
            return TIER_GOLD
        if rank <= math.ceil(total * self.silver):
            return TIER_SILVER
        return TIER_BRONZE


DEFAULT_TIER_POLICY: TierPolicy = PositionalTierPolicy()


@dataclass(frozen=True)
class RankedEntry:
    result: EmployeeScoreResult
    rank: int
    tier: str

    @property
    def user_id(self) -> int:
        return self.result.user_id


def rank_employees(
    results: Iterable[EmployeeScoreResult],
    policy: TierPolicy | None = None,
) -> list[RankedEntry]:
    policy = policy or DEFAULT_TIER_POLICY
    # sorted() is stable: equal unrounded scores keep their input order.
    ordered = sorted(results, key=lambda item: item.overall_score, reverse=True)
    total = len(ordered)
    return [
        RankedEntry(result=item, rank=index, tier=policy.tier_for(index, total))
        for index, item in enumerate(ordered, start=1)
    ]


def rerank_entries(entries: Iterable[RankedEntry], policy: TierPolicy | None = None) -> list[RankedEntry]:
    """Renumber already ordered entries densely from 1, reassigning tiers."""
    policy = policy or DEFAULT_TIER_POLICY
    ordered = list(entries)
    total = len(ordered)
    return [
        RankedEntry(result=item.result, rank=index, tier=policy.tier_for(index, total))
        for index, item in enumerate(ordered, start=1)
    ]
