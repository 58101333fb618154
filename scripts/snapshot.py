#!/usr/bin/env python3
"""Build a dashboard snapshot, exercise one source, or print the status report.

    python scripts/snapshot.py                  # full snapshot as JSON
    python scripts/snapshot.py --source news    # one source's get_data
    python scripts/snapshot.py --status         # statuses, attempt metrics, LLM cost
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime

from homeboard.aggregator.builder import AggregationError, Aggregator, build_aggregator
from homeboard.aggregator.fallback import current_from_weather
from homeboard.config import settings
from homeboard.logging_config import setup_logging
from homeboard.models.snapshot import RequestContext
from homeboard.sources.errors import SourceError
from homeboard.sources.insights import InsightsRequest
from homeboard.utils.time import resolve_zone


async def run_source(aggregator: Aggregator, name: str, context: RequestContext) -> dict:
    sources = {source.cache_key: source for source in aggregator.sources}
    if name not in sources:
        raise SystemExit(f"Unknown source {name!r}; choose from {', '.join(sorted(sources))}")
    source = sources[name]

    config = context
    if name == "insights":
        weather = await aggregator.weather.get_data(context)
        if weather.data is None:
            raise SystemExit("Insights need weather data, but the weather source is disabled")
        report = weather.data
        config = InsightsRequest(
            local_time=datetime.now(resolve_zone(report.timezone)),
            current=current_from_weather(report.main),
            forecast=report.forecast,
            hourly=report.hourly,
            location_name=report.main.name,
            moon=report.moon,
        )

    result = await source.get_data(config)
    data = result.data.model_dump(mode="json") if hasattr(result.data, "model_dump") else result.data
    if isinstance(data, list):
        data = [item.model_dump(mode="json") if hasattr(item, "model_dump") else item for item in data]
    return {
        "source": name,
        "origin": result.origin.value,
        "status": result.status.model_dump(mode="json"),
        "data": data,
    }


async def run(args: argparse.Namespace) -> dict:
    aggregator = build_aggregator(settings)
    context = RequestContext(base_url=args.base_url, timezone=settings.timezone)

    if args.status:
        return aggregator.status_report()
    if args.source:
        return await run_source(aggregator, args.source, context)
    return (await aggregator.get_snapshot(context)).model_dump(mode="json")


def main() -> int:
    parser = argparse.ArgumentParser(description="Homeboard snapshot tool")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--source", help="run a single source (weather, ambient, calendar, news, markets, insights)")
    group.add_argument("--status", action="store_true", help="print source statuses, metrics and LLM cost")
    parser.add_argument("--base-url", default="http://localhost:3000", help="base URL hint passed to sources")
    args = parser.parse_args()

    setup_logging(settings.log_level)
    try:
        output = asyncio.run(run(args))
    except (AggregationError, SourceError) as exc:
        print(json.dumps({"ok": False, "error": str(exc)}))
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
