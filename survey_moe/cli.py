"""
Command-line entry point: tabulate a survey export.

Usage:
    survey-moe responses.csv --config questions.json --demographics demo.csv --out out/
"""
import argparse
import logging
import sys

from .config import Settings, load_config
from .pipeline import run

logger = logging.getLogger("survey_moe")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="survey-moe",
        description="Frequency tables with 95% margins of error for every survey question.",
    )
    parser.add_argument("responses", help="Survey-platform CSV export")
    parser.add_argument("--config", required=True, help="JSON question configuration")
    parser.add_argument("--demographics", help="CSV of demographic attributes keyed by email")
    parser.add_argument("--out", default=None, help=f"Output directory (default: {Settings.OUTPUT_DIR})")
    parser.add_argument("--no-charts", action="store_true", help="Only write CSV tables")
    parser.add_argument("--log-level", default=Settings.LOG_LEVEL, help="Logging level (default: %(default)s)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config(args.config)
        tables = run(config, args.responses, demographics_path=args.demographics,
                     out_dir=args.out, charts=not args.no_charts)
    except ValueError as e:
        # load, join, config and zero-sample errors are all ValueError subclasses
        print(f"survey-moe: error: {e}", file=sys.stderr)
        return 2
    for code, tbl in tables.items():
        logger.info("%s: %d categories, n=%d", code, len(tbl), int(tbl["total"].max()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
