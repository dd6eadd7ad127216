# src/records.py
"""
Row parsing for the cohort ranking pipeline.

A raw row is a sequence of text fields. Only three positions matter:
year (default field 0), region key (field 1) and the cohort population
(field 3). Everything else in the row is ignored.

Rows that cannot be parsed raise ``UnparsableRow``; ``parse_rows`` catches it,
counts the row and moves on so that a corrupt line never aborts ingestion.
Rows for years other than the two reference years are dropped here and never
reach the aggregator.
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, NamedTuple, Optional, Sequence

from helpers import _clean_field, _coerce_int

logger = logging.getLogger(__name__)


class UnparsableRow(ValueError):
    """A row whose year, region or population field cannot be read."""


class ParsedRecord(NamedTuple):
    year: int
    region: str
    population: int


class IngestStats:
    """Running tallies for one ingestion pass."""

    def __init__(self):
        self.rows_read = 0
        self.unparsable = 0
        self.off_year = 0
        self.accepted = 0

    def as_dict(self) -> dict:
        return {
            "rows_read": self.rows_read,
            "unparsable": self.unparsable,
            "off_year": self.off_year,
            "accepted": self.accepted,
        }

    def __repr__(self):
        return f"IngestStats({self.as_dict()})"


def parse_row(
    fields: Sequence[str],
    *,
    year_index: int = 0,
    region_index: int = 1,
    cohort_index: int = 3,
) -> ParsedRecord:
    """
    Turn one raw row into a ``ParsedRecord``.

    Parameters
    ----------
    fields : Sequence[str]
        Positional text fields of one input line.
    year_index, region_index, cohort_index : int
        Field positions of the year, region key and cohort population.

    Returns
    -------
    ParsedRecord

    Raises
    ------
    UnparsableRow
        If the row is too short, the year or population is not an integer,
        or the region key is empty.
    """
    needed = max(year_index, region_index, cohort_index)
    if len(fields) <= needed:
        raise UnparsableRow(f"expected at least {needed + 1} fields, got {len(fields)}")

    year = _coerce_int(fields[year_index])
    if year is None:
        raise UnparsableRow(f"non-numeric year: {fields[year_index]!r}")

    region = _clean_field(fields[region_index])
    if not region:
        raise UnparsableRow("empty region key")

    population = _coerce_int(fields[cohort_index])
    if population is None:
        raise UnparsableRow(f"non-numeric population: {fields[cohort_index]!r}")

    return ParsedRecord(year, region, population)


def is_reference_year(year: int, before_year: int, after_year: int) -> bool:
    return year == before_year or year == after_year


def parse_rows(
    rows: Iterable[Sequence[str]],
    before_year: int,
    after_year: int,
    *,
    year_index: int = 0,
    region_index: int = 1,
    cohort_index: int = 3,
    stats: Optional[IngestStats] = None,
) -> Iterator[ParsedRecord]:
    """
    Lazily parse and filter raw rows.

    Yields only records whose year is one of the two reference years. Corrupt
    rows are logged at DEBUG and skipped. Exceptions raised by the row source
    itself are not caught.
    """
    if stats is None:
        stats = IngestStats()
    for lineno, fields in enumerate(rows, 1):
        stats.rows_read += 1
        try:
            rec = parse_row(
                fields,
                year_index=year_index,
                region_index=region_index,
                cohort_index=cohort_index,
            )
        except UnparsableRow as e:
            stats.unparsable += 1
            logger.debug("[ingest] skipping row %d: %s", lineno, e)
            continue
        if not is_reference_year(rec.year, before_year, after_year):
            stats.off_year += 1
            continue
        stats.accepted += 1
        yield rec
