# src/pipeline.py
"""
End-to-end wiring: raw rows -> records -> accumulators -> ratios -> ranking.

The ratio and ranking stages only run once the row source is exhausted. If the
source fails part-way, the failure propagates and no ranking is produced.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

from aggregation import aggregate_records
from data_loaders import (
    DEFAULT_CHUNKSIZE,
    PipelineSettings,
    SourceExhaustionFailure,
    iter_source_rows,
    split_rows,
)
from ranking import RegionResult, compute_change_ratios, rank_regions
from records import IngestStats, parse_rows


def run_pipeline(
    rows: Iterable[Sequence[str]],
    settings: PipelineSettings,
    *,
    progress: bool = False,
    stats: Optional[IngestStats] = None,
) -> Tuple[RegionResult, ...]:
    """
    Rank regions by cohort change for an iterable of raw rows.

    Parameters
    ----------
    rows : Iterable[Sequence[str]]
        Raw rows, consumed once, lazily.
    settings : PipelineSettings
        Reference years and field positions.
    progress : bool
        Show a tqdm bar while ingesting.
    stats : IngestStats, optional
        Filled in with row tallies when given.

    Returns
    -------
    tuple[RegionResult, ...]
        Ranked results, largest change first.

    Raises
    ------
    SourceExhaustionFailure
        If the row source fails before completion (OSError from a custom
        source is converted).
    """
    records = parse_rows(
        rows,
        settings.before_year,
        settings.after_year,
        year_index=settings.year_index,
        region_index=settings.region_index,
        cohort_index=settings.cohort_index,
        stats=stats,
    )
    try:
        regions = aggregate_records(
            records, settings.before_year, settings.after_year, progress=progress
        )
    except OSError as e:
        raise SourceExhaustionFailure(f"Row source failed: {e}") from e

    return rank_regions(compute_change_ratios(regions))


def run_pipeline_from_lines(
    lines: Iterable[str],
    settings: PipelineSettings,
    *,
    chunksize: int = DEFAULT_CHUNKSIZE,
    **kwargs,
) -> Tuple[RegionResult, ...]:
    rows = split_rows(lines, settings.columns, settings.delimiter, chunksize=chunksize)
    return run_pipeline(rows, settings, **kwargs)


def run_pipeline_from_csv(
    file_path: str,
    settings: PipelineSettings,
    *,
    encoding: str = "utf-8",
    chunksize: int = DEFAULT_CHUNKSIZE,
    **kwargs,
) -> Tuple[RegionResult, ...]:
    rows = iter_source_rows(
        file_path, settings.columns, settings.delimiter, encoding=encoding, chunksize=chunksize
    )
    return run_pipeline(rows, settings, **kwargs)
