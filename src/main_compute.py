# ------------------------------------------------------------------------------
# Cohort change ranking run script.
# - Reads the population CSV line by line (no full buffering).
# - Keeps only the two reference years (default 2016 -> 2021).
# - Ranks regions by after/before of the cohort column, largest first.
# - Prints the ranking and writes <results_dir>/ranking_<before>_<after>.csv.
# - A read failure part-way through aborts the run before anything is written.
# ------------------------------------------------------------------------------


from __future__ import annotations
from typing import Optional, List
import argparse
import logging
import os

from data_loaders import _load_config, settings_from_config
from pipeline import run_pipeline_from_csv
from records import IngestStats
from reports import format_ranking, save_ranking, summarize_ranking

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
CONFIG_PATH = os.path.join(ROOT_DIR, "config.yaml")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        description="Rank regions by the change of one age cohort between two years."
    )
    ap.add_argument("--config", default=CONFIG_PATH, help="YAML config (default: ./config.yaml)")
    ap.add_argument("--input", default=None, help="override paths.input_csv")
    ap.add_argument("--results-dir", default=None, help="override paths.results_dir")
    ap.add_argument("--before", type=int, default=None, help="override years.before")
    ap.add_argument("--after", type=int, default=None, help="override years.after")
    ap.add_argument("--no-save", action="store_true", help="do not write the ranking CSV")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    CFG, PATHS = _load_config(ROOT_DIR, args.config)

    if args.before is not None:
        CFG["years"]["before"] = args.before
    if args.after is not None:
        CFG["years"]["after"] = args.after
    if args.input:
        PATHS["input_csv"] = os.path.abspath(args.input)
    if args.results_dir:
        PATHS["results_dir"] = os.path.abspath(args.results_dir)

    DIAG = CFG.get("diagnostics", {})
    PRINT_SUMMARY = bool(DIAG.get("print_summary", True))
    logging.basicConfig(level=str(DIAG.get("log_level", "WARNING")).upper())

    settings = settings_from_config(CFG)
    cohort = CFG.get("cohort", {}).get("label", "")
    encoding = CFG.get("input", {}).get("encoding", "utf-8")
    chunksize = int(CFG.get("input", {}).get("chunksize", 10000))

    if PRINT_SUMMARY:
        print(
            f"[ingest] {PATHS['input_csv']} | cohort {cohort} | "
            f"{settings.before_year} -> {settings.after_year}"
        )

    stats = IngestStats()
    ranked = run_pipeline_from_csv(
        PATHS["input_csv"],
        settings,
        encoding=encoding,
        chunksize=chunksize,
        progress=bool(DIAG.get("progress", False)),
        stats=stats,
    )

    summary = summarize_ranking(ranked)
    if PRINT_SUMMARY:
        print(
            f"[ingest] rows={stats.rows_read} accepted={stats.accepted} "
            f"off_year={stats.off_year} unparsable={stats.unparsable}"
        )
        print(
            f"[ranking] regions={summary['regions']} increased={summary['increased']} "
            f"decreased={summary['decreased']} incomplete={summary['incomplete']}"
        )
    for r in ranked:
        if not r.is_complete:
            logging.warning(
                f"[ranking] {r.region}: incomplete data (before={r.before}, after={r.after})"
            )

    OUT = CFG.get("output", {})
    if bool(OUT.get("print_ranking", True)):
        for line in format_ranking(ranked):
            print(line)

    if not args.no_save:
        out_path = save_ranking(
            ranked,
            PATHS["results_dir"],
            OUT.get("ranking_csv", "ranking.csv"),
            suffix=f"_{settings.before_year}_{settings.after_year}",
        )
        if PRINT_SUMMARY:
            print(f"[output] Wrote {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
