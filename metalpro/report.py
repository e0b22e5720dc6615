from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .bom_parser import BOMRow


ATTENTION_TIERS = {"low", "none"}


@dataclass
class BOMMatchingStats:
    total_rows: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unmatched: int = 0
    match_rate: float = 0.0


@dataclass
class MatchingReport:
    stats: BOMMatchingStats
    attention: list[BOMRow] = field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0


def matching_stats(rows: Iterable[BOMRow]) -> BOMMatchingStats:
    stats = BOMMatchingStats()
    for row in rows:
        stats.total_rows += 1
        if row.match_confidence == "high":
            stats.high += 1
        elif row.match_confidence == "medium":
            stats.medium += 1
        elif row.match_confidence == "low":
            stats.low += 1
        else:
            stats.unmatched += 1
    if stats.total_rows:
        matched = stats.high + stats.medium + stats.low
        stats.match_rate = round(matched / stats.total_rows * 100, 1)
    return stats


def rows_needing_attention(rows: Iterable[BOMRow]) -> list[BOMRow]:
    flagged = [row for row in rows if row.match_confidence in ATTENTION_TIERS or row.errors]
    return sorted(flagged, key=lambda row: row.row_index)


def cart_ready_rows(rows: Iterable[BOMRow], selected_only: bool = False) -> list[BOMRow]:
    ready = [
        row
        for row in rows
        if not row.errors and row.matched_product_id and (row.is_selected or not selected_only)
    ]
    return sorted(ready, key=lambda row: row.row_index)


def build_report(rows: Iterable[BOMRow]) -> MatchingReport:
    rows = list(rows)
    return MatchingReport(
        stats=matching_stats(rows),
        attention=rows_needing_attention(rows),
        error_count=sum(len(row.errors) for row in rows),
        warning_count=sum(len(row.warnings) for row in rows),
    )
