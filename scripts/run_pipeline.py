#!/usr/bin/env python3
"""
Cron entry point for the processing pipeline.

Runs one dispatcher batch, or every due scheduled task, against DATABASE_URL
and prints the JSON result.

Usage:
    python scripts/run_pipeline.py batch --batch-size 20
    python scripts/run_pipeline.py run-due
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog  # noqa: E402

from convo_pipeline.config import get_settings  # noqa: E402
from convo_pipeline.core.lifespan import build_trend_analyzer, create_db_pool  # noqa: E402
from convo_pipeline.services.pipeline import PipelineService  # noqa: E402
from convo_pipeline.services.sentiment import build_sentiment_providers  # noqa: E402

logger = structlog.get_logger("run_pipeline")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    batch = sub.add_parser("batch", help="Process one batch of pending jobs")
    batch.add_argument("--batch-size", type=int, default=None)

    run_due = sub.add_parser("run-due", help="Run due scheduled tasks")
    run_due.add_argument("--limit", type=int, default=10)
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    pool = await create_db_pool(settings)
    if pool is None:
        print("DATABASE_URL is not set or the database is unreachable", file=sys.stderr)
        return 2

    providers = build_sentiment_providers(settings)
    trend_analyzer = build_trend_analyzer(settings)
    service = PipelineService.from_pool(pool, providers, trend_analyzer, settings)
    try:
        if args.command == "batch":
            result = (await service.process_batch(args.batch_size)).to_dict()
        else:
            result = await service.run_due_tasks(limit=args.limit)
    finally:
        await providers.aclose()
        await trend_analyzer.aclose()
        await pool.close()

    logger.info("pipeline_run_finished", command=args.command)
    print(json.dumps(result, indent=2, default=str))
    return 0


def main() -> None:
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
