# src/ranking.py
"""
Change ratios and the final ranking.

Both steps run once, after ingestion is complete.

Division by zero is not guarded: a region with before == 0 gets +inf (or NaN
when after is also 0) and stays in the result set, flagged through
``RegionResult.is_complete``.

Ordering policy
---------------
- Descending by change; +inf first, -inf after every finite value.
- NaN always last.
- Equal changes (NaN included) are ordered by region key, ascending.
"""
from __future__ import annotations

from typing import Iterable, List, Mapping, NamedTuple, Tuple

import numpy as np

from aggregation import RegionAccumulator


class RegionResult(NamedTuple):
    region: str
    before: int
    after: int
    change: float

    @property
    def is_complete(self) -> bool:
        """Both reference years carry a non-zero count."""
        return self.before != 0 and self.after != 0


def _change_ratio(before: int, after: int) -> float:
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(after) / np.float64(before))


def compute_change_ratios(regions: Mapping[str, RegionAccumulator]) -> List[RegionResult]:
    """
    Compute ``change = after / before`` for every region, in mapping order.

    Parameters
    ----------
    regions : Mapping[str, RegionAccumulator]
        Finalized aggregator output.

    Returns
    -------
    list[RegionResult]
        One entry per region; nothing is dropped or rounded.
    """
    return [
        RegionResult(region, acc.before, acc.after, _change_ratio(acc.before, acc.after))
        for region, acc in regions.items()
    ]


def _rank_key(r: RegionResult):
    if np.isnan(r.change):
        return (1, 0.0, r.region)
    return (0, -r.change, r.region)


def rank_regions(results: Iterable[RegionResult]) -> Tuple[RegionResult, ...]:
    """Return every result ordered by change, largest first (see module notes)."""
    return tuple(sorted(results, key=_rank_key))
