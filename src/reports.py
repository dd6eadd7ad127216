# src/reports.py
"""
Presentation of a finished ranking.

Console lines in the form "<region>: <before> => <after> change-ratio: <change>",
a pandas table with a 1-based rank and an incomplete-data flag, a small count
summary, and CSV output under results_dir.
"""
import os

import numpy as np
import pandas as pd

from helpers import _with_suffix

RANKING_COLUMNS = ["rank", "region", "before", "after", "change", "incomplete"]


def format_ranking_line(result) -> str:
    """
    '<region>: <before> => <after> change-ratio: <change>'
    """
    return f"{result.region}: {result.before} => {result.after} change-ratio: {result.change}"


def format_ranking(ranked) -> list[str]:
    return [format_ranking_line(r) for r in ranked]


def ranking_to_frame(ranked) -> pd.DataFrame:
    """
    Tabulate a ranking; 'rank' is 1-based and follows the given order.
    Non-finite changes are kept as inf / NaN.
    """
    rows = [
        {
            "rank": i,
            "region": r.region,
            "before": int(r.before),
            "after": int(r.after),
            "change": float(r.change),
            "incomplete": not r.is_complete,
        }
        for i, r in enumerate(ranked, 1)
    ]
    return pd.DataFrame(rows, columns=RANKING_COLUMNS)


def summarize_ranking(ranked) -> dict:
    changes = np.array([r.change for r in ranked], dtype=float)
    return {
        "regions": int(changes.size),
        "incomplete": int(sum(1 for r in ranked if not r.is_complete)),
        "increased": int(np.sum(changes > 1.0)),
        "decreased": int(np.sum(changes < 1.0)),
    }


def save_ranking(
    ranked,
    results_dir,  # <- REQUIRED: pass PATHS["results_dir"]
    filename="ranking.csv",
    suffix="",
):
    """
    Save the ranking table to <results_dir>/<filename> and return the path.
    """
    os.makedirs(results_dir, exist_ok=True)
    out_path = os.path.join(results_dir, _with_suffix(filename, suffix))
    ranking_to_frame(ranked).to_csv(out_path, index=False)
    return out_path
