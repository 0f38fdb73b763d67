#!/usr/bin/env python3
"""Command-line interface for the price alignment pipeline."""

from __future__ import annotations

import argparse
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging for a CLI run."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)


def cmd_run(args: argparse.Namespace) -> int:
    """Merge the configured sources and write the output table."""
    from cryptostocks.commands.merge_prices import (VALID_LOG_LEVELS,
                                                    default_config,
                                                    load_merge_prices_config)
    from cryptostocks.exceptions import ConfigError, PipelineError
    from cryptostocks.pipeline.driver import (PipelineContext, format_preview,
                                              run_pipeline, to_output_row)

    try:
        if args.config:
            config = load_merge_prices_config(args.config)
        else:
            config = default_config(args.data_dir, args.output)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    log_level = (args.log_level or config.log_level).upper()
    if log_level not in VALID_LOG_LEVELS:
        print(f"Configuration error: invalid log level '{log_level}'")
        return 1
    configure_logging(log_level)

    print("=" * 60)
    print("MERGE PRICES")
    print("=" * 60)
    for source in config.sources:
        print(f"{source.id:<10} {source.path} ({source.date_format})")
    print(f"Years:     {config.year_range.after} < year < {config.year_range.before}")
    print(f"Window:    {config.window_size} rows")
    print(f"Output:    {config.output.path}")

    try:
        result = run_pipeline(config)
    except PipelineError as e:
        print(f"Pipeline failed: {e}")
        return 1

    if args.show > 0:
        context = PipelineContext.from_config(config)
        rows = [to_output_row(record, context) for record in result.records]
        print()
        print(format_preview(rows, context.output_columns(), limit=args.show))

    print("\n" + "=" * 60)
    print("RESULTS")
    print("=" * 60)
    for source_id, count in result.rows_read.items():
        print(f"{source_id:<10} read {count:>6}, kept {result.rows_kept[source_id]:>6}")
    print(f"Joined rows:  {result.joined_rows}")
    print(f"Output rows:  {result.output_rows}")
    print(f"Written to:   {result.output_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Align crypto and stock price histories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser(
        "run", help="Merge the sources and write the output table"
    )
    run_parser.add_argument(
        "-c", "--config", help="Path to YAML configuration file"
    )
    run_parser.add_argument(
        "--data-dir",
        default=".",
        help="Directory with the default source files (ignored with --config)",
    )
    run_parser.add_argument(
        "-o",
        "--output",
        default="output/crypto_stocks.csv",
        help="Output file for the default run (ignored with --config)",
    )
    run_parser.add_argument(
        "--show",
        type=int,
        default=20,
        help="Number of rows to preview (0 disables, default: 20)",
    )
    run_parser.add_argument("--log-level", help="Override the configured log level")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return cmd_run(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
