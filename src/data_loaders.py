# src/data_loaders.py
"""
Configuration loading and the CSV row sources for the cohort pipeline.

- Built-in defaults deep-merged with an optional YAML config file.
- Coercion of the years/fields/input blocks into PipelineSettings.
- Chunked pandas readers that turn a CSV file, or any iterable of text lines,
  into positional rows. Quoting follows the CSV rules of ``pd.read_csv``; only
  the configured field positions are read, extra fields are ignored.
"""
import io
import os
from typing import Iterable, Iterator, NamedTuple

import pandas as pd
import yaml

from helpers import _is_single_char, _positional_row, _used_columns

DEFAULT_CHUNKSIZE = 10_000


class SourceExhaustionFailure(RuntimeError):
    """The input source failed before signalling normal completion."""


class PipelineSettings(NamedTuple):
    before_year: int
    after_year: int
    year_index: int = 0
    region_index: int = 1
    cohort_index: int = 3
    delimiter: str = ","

    @property
    def columns(self) -> list:
        """Field positions the parser needs, in file order."""
        return _used_columns(self.year_index, self.region_index, self.cohort_index)


def return_default_config():
    """
    Returns the default configuration dictionary
    """
    return {
        "paths": {
            "input_csv": "./data/popu-pref.csv",
            "results_dir": "./results",
        },
        "input": {"delimiter": ",", "encoding": "utf-8", "chunksize": 10000},
        "years": {"before": 2016, "after": 2021},
        "fields": {"year_index": 0, "region_index": 1, "cohort_index": 3},
        "cohort": {"label": "15-19"},
        "diagnostics": {
            "print_summary": True,
            "progress": False,
            "log_level": "WARNING",
        },
        "output": {"ranking_csv": "ranking.csv", "print_ranking": True},
    }

def _resolve(ROOT_DIR, p):
    """
    Resolve path p relative to ROOT_DIR if not absolute.
    """
    return os.path.abspath(os.path.join(ROOT_DIR, p))

def _deep_merge(dst, src):
    """
    Recursively merge src into dst
    """
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = v

def _load_config(ROOT_DIR: str, path: str):
    """
    Load YAML config if present; otherwise use defaults for both config and paths.
    Returns (cfg, PATHS)
    """
    cfg = return_default_config()
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as fh:
            user = yaml.safe_load(fh) or {}
        _deep_merge(cfg, user)
    else:
        print(f"[config] No config file at {path}; using built-in defaults.")

    PATHS = {
        "input_csv": _resolve(ROOT_DIR, cfg["paths"]["input_csv"]),
        "results_dir": _resolve(ROOT_DIR, cfg["paths"]["results_dir"]),
    }
    return cfg, PATHS

def settings_from_config(cfg: dict) -> PipelineSettings:
    """
    Coerce the years/fields/input blocks of a config dict into PipelineSettings.

    Raises ValueError for equal reference years, negative field indices or a
    delimiter that is not exactly one character.
    """
    years = cfg.get("years", {})
    fields = cfg.get("fields", {})
    delim = cfg.get("input", {}).get("delimiter", ",")

    try:
        before = int(years["before"])
        after = int(years["after"])
    except KeyError as e:
        raise KeyError(f"[config] years block must define 'before' and 'after' (missing {e})")
    if before == after:
        raise ValueError(f"[config] years.before and years.after must differ, got {before}")

    idx = {}
    for key, default in (("year_index", 0), ("region_index", 1), ("cohort_index", 3)):
        v = int(fields.get(key, default))
        if v < 0:
            raise ValueError(f"[config] fields.{key} must be >= 0, got {v}")
        idx[key] = v

    if not _is_single_char(delim):
        raise ValueError(f"[config] input.delimiter must be a single character, got {delim!r}")

    return PipelineSettings(before_year=before, after_year=after, delimiter=delim, **idx)

# ----------------------------- source readers ------------------------------

def _read_csv_kwargs(columns, delimiter):
    return dict(
        sep=delimiter,
        header=None,
        usecols=columns,
        names=[f"f{i}" for i in columns],
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
    )

def _frame_rows(frame: pd.DataFrame, columns) -> Iterator[list]:
    for values in frame.itertuples(index=False, name=None):
        yield _positional_row(values, columns)

def iter_source_rows(
    file_path: str,
    columns,
    delimiter: str = ",",
    encoding: str = "utf-8",
    chunksize: int = DEFAULT_CHUNKSIZE,
) -> Iterator[list]:
    """
    Lazily yield positional rows of file_path, chunksize lines at a time.

    Only the field positions in columns are read; every yielded row is a list
    of length max(columns) + 1 with None at unread positions. A missing file
    raises FileNotFoundError immediately. Read, decode or tokenizer errors
    raised while the file is being consumed surface as SourceExhaustionFailure.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")
    return _read_csv_rows(file_path, _used_columns(*columns), delimiter, encoding, chunksize)

def _read_csv_rows(file_path, columns, delimiter, encoding, chunksize) -> Iterator[list]:
    try:
        with pd.read_csv(
            file_path,
            encoding=encoding,
            chunksize=chunksize,
            **_read_csv_kwargs(columns, delimiter),
        ) as reader:
            for chunk in reader:
                yield from _frame_rows(chunk, columns)
    except pd.errors.EmptyDataError:
        return
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
        raise SourceExhaustionFailure(f"Failed to read {file_path}: {e}") from e

def split_rows(
    lines: Iterable[str],
    columns,
    delimiter: str = ",",
    chunksize: int = DEFAULT_CHUNKSIZE,
) -> Iterator[list]:
    """
    Tokenize an iterable of text lines into positional rows, chunksize lines
    per pd.read_csv call. Blank lines are dropped by the reader. Errors raised
    by the line iterable itself propagate unchanged.
    """
    columns = _used_columns(*columns)
    batch = []
    for line in lines:
        batch.append(line.rstrip("\r\n"))
        if len(batch) >= chunksize:
            yield from _rows_from_text("\n".join(batch), columns, delimiter)
            batch = []
    if batch:
        yield from _rows_from_text("\n".join(batch), columns, delimiter)

def _rows_from_text(text: str, columns, delimiter) -> Iterator[list]:
    try:
        frame = pd.read_csv(io.StringIO(text), **_read_csv_kwargs(columns, delimiter))
    except pd.errors.EmptyDataError:
        return
    except pd.errors.ParserError as e:
        raise SourceExhaustionFailure(f"Failed to tokenize input lines: {e}") from e
    yield from _frame_rows(frame, columns)
