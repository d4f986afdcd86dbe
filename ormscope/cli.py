from __future__ import annotations

import argparse
import sys
from typing import Optional

from pydantic import TypeAdapter

from ormscope.config import LOG_LEVELS, BenchConfig
from ormscope.harness import ScenarioResult
from ormscope.log import setup_logging
from ormscope.suite import run_suite

results_adapter = TypeAdapter(list[ScenarioResult])


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ormscope",
        description="Time equivalent SQLAlchemy access patterns against one database",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (env: ORMSCOPE_DATABASE_URL)",
    )
    parser.add_argument(
        "--compute-timing",
        action="store_true",
        default=None,
        help="Seed extra rows and silence SQL echo so timings are meaningful",
    )
    parser.add_argument(
        "--eager-loading",
        action="store_true",
        default=None,
        help="Also run the joined eager-loading scenarios",
    )
    parser.add_argument(
        "--timing-posts",
        type=int,
        default=None,
        help="Extra posts seeded with --compute-timing (default: 1000)",
    )
    parser.add_argument(
        "--no-query-count",
        dest="count_queries",
        action="store_false",
        default=None,
        help="Do not count the statements issued by each scenario",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (env: ORMSCOPE_LOG_LEVEL)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the results as JSON once the run is over",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    config = BenchConfig.from_env(
        database_url=args.database_url,
        compute_timing=args.compute_timing,
        eager_loading=args.eager_loading,
        timing_posts=args.timing_posts,
        count_queries=args.count_queries,
        log_level=args.log_level,
    )
    setup_logging(config)

    results = run_suite(config)

    if args.json:
        sys.stdout.write(results_adapter.dump_json(results, indent=2).decode())
        sys.stdout.write("\n")
    return 0
