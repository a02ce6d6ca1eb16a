"""CLI entry point for the ExEvE workflow."""

import argparse
import logging
import sys
import time
from typing import List, Optional

from .config import DEFAULT_DEFINITIONS, MEAN_BASELINE_DEFINITIONS, ExEvEConfig, get_logger
from .data_io import MissingInputFile, UnparseableTimeUnits, VariableNotFound
from .pipeline import load_result, run_pipeline
from .report import write_report, write_run

_logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="exeves",
        description="Identify extreme evaporation events in a gridded daily product",
    )
    subparsers = parser.add_subparsers(dest="command")

    def common(p):
        p.add_argument("--region", default=ExEvEConfig.region, help="Region tag used in file names")
        p.add_argument("--output-dir", default=".", help="Root of the data/ and tables/ outputs")
        p.add_argument("--mean-baseline", action="store_true",
                       help="Use the z = 0 baseline as low threshold of Mean/Q95")
        p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    run_parser = subparsers.add_parser("run", help="Identify events and write all tables")
    common(run_parser)
    run_parser.add_argument("--input", dest="input_file", help="NetCDF file (default gleam_e_mm_<region>.nc)")
    run_parser.add_argument("--variable", default=ExEvEConfig.variable, help="Data variable name")
    run_parser.add_argument("--chunk-rows", type=int, default=ExEvEConfig.chunk_rows,
                            help="Row ceiling per batch of grid cells")
    run_parser.add_argument("--workers", type=int, default=1, help="Worker processes")
    run_parser.add_argument("--clip-period", action="store_true",
                            help="Drop dates outside the study period")
    run_parser.add_argument("--skip-summary", action="store_true",
                            help="Do not write the summary tables")

    summary_parser = subparsers.add_parser("summarize", help="Summary tables from a previous run")
    common(summary_parser)
    summary_parser.add_argument("--definition", default="Q80/Q95",
                                help="Definition summarized by period, season and cell")
    return parser


def _config_from_args(args) -> ExEvEConfig:
    definitions = MEAN_BASELINE_DEFINITIONS if args.mean_baseline else DEFAULT_DEFINITIONS
    overrides = dict(region=args.region, output_dir=args.output_dir, definitions=definitions)
    if args.command == "run":
        overrides.update(
            input_file=args.input_file,
            variable=args.variable,
            chunk_rows=args.chunk_rows,
            n_workers=args.workers,
            clip_to_period=args.clip_period,
        )
    return ExEvEConfig(**overrides)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1
    if args.verbose:
        for name in list(logging.root.manager.loggerDict):
            if name == "exeves" or name.startswith("exeves."):
                logging.getLogger(name).setLevel(logging.DEBUG)

    try:
        config = _config_from_args(args)
    except ValueError as exc:
        _logger.error(f"Invalid configuration: {exc}")
        return 1
    if args.command == "summarize" and args.definition not in {d.name for d in config.definitions}:
        _logger.error(f"Unknown definition: {args.definition}")
        return 1

    start = time.time()
    try:
        if args.command == "run":
            result = run_pipeline(config, write=False)
            write_run(result, config, summary=not args.skip_summary)
        else:
            result = load_result(config)
            if result is None:
                _logger.error(f"No previous run found under {config.data_dir}")
                return 1
            write_report(result, config, args.definition)
    except (MissingInputFile, VariableNotFound, UnparseableTimeUnits) as exc:
        _logger.error(f"ERROR: {exc}")
        return 1

    _logger.info(f"Total time: {(time.time() - start) / 60:.1f} minutes")
    return 0


if __name__ == "__main__":
    sys.exit(main())
