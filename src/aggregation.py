# src/aggregation.py
"""
Per-region accumulation of the before/after cohort counts.

One ``CohortAggregator`` is created per pipeline run and owns the only mutable
state of the run: the mapping region -> RegionAccumulator. Records are
assigned, not summed; if the same (region, year) pair shows up twice the
later row wins.
"""
from __future__ import annotations

from typing import Dict, Iterable

from tqdm import tqdm

from records import ParsedRecord


class RegionAccumulator:
    __slots__ = ("before", "after")

    def __init__(self, before: int = 0, after: int = 0):
        self.before = before
        self.after = after

    def __eq__(self, other):
        if not isinstance(other, RegionAccumulator):
            return NotImplemented
        return (self.before, self.after) == (other.before, other.after)

    def __repr__(self):
        return f"RegionAccumulator(before={self.before}, after={self.after})"


class CohortAggregator:
    """
    Incremental aggregator over parsed records.

    Parameters
    ----------
    before_year, after_year : int
        The two reference years. Records for any other year must be filtered
        out upstream (see ``records.parse_rows``); they are rejected here.
    """

    def __init__(self, before_year: int, after_year: int):
        if before_year == after_year:
            raise ValueError(f"before_year and after_year must differ, got {before_year}")
        self.before_year = int(before_year)
        self.after_year = int(after_year)
        self._regions: Dict[str, RegionAccumulator] = {}
        self._finalized = False

    def __len__(self):
        return len(self._regions)

    def ingest(self, record: ParsedRecord) -> None:
        if self._finalized:
            raise RuntimeError("ingest() called after finalize()")
        if record.year != self.before_year and record.year != self.after_year:
            raise ValueError(
                f"record year {record.year} is not a reference year "
                f"({self.before_year}/{self.after_year})"
            )
        acc = self._regions.get(record.region)
        if acc is None:
            acc = RegionAccumulator()
            self._regions[record.region] = acc
        if record.year == self.before_year:
            acc.before = record.population
        if record.year == self.after_year:
            acc.after = record.population

    def finalize(self) -> Dict[str, RegionAccumulator]:
        """Close the ingestion phase and hand over the accumulator mapping."""
        if self._finalized:
            raise RuntimeError("finalize() may only be called once")
        self._finalized = True
        return self._regions


def aggregate_records(
    records: Iterable[ParsedRecord],
    before_year: int,
    after_year: int,
    *,
    progress: bool = False,
) -> Dict[str, RegionAccumulator]:
    """
    Ingest every record and return the finalized mapping.

    If iterating ``records`` raises, the exception propagates and nothing is
    finalized.
    """
    agg = CohortAggregator(before_year, after_year)
    it = tqdm(records, desc="Ingesting", unit="rec") if progress else records
    for rec in it:
        agg.ingest(rec)
    return agg.finalize()
