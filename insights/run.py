#!/usr/bin/env python3
"""
CLI entry point for analysis runs.

Usage:
    # Run an analysis and store its predictions
    python -m insights.run cross_sell
    python -m insights.run churn_prediction

    # Export stored predictions to Excel
    python -m insights.run --export out.xlsx --type cross_sell --min-probability 70

    # Let the model define a segment for free-text criteria
    python -m insights.run --segment "Kasko owners in İzmir without Trafik"

    # List past runs
    python -m insights.run --list
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import pandas as pd

from .config import DEFAULT_CONFIG, ScoringConfig
from .errors import InsightError
from .export import export_filename, write_predictions_excel
from .llm import InsightClient
from .models import AnalysisType, CustomSegment, PredictionFilter
from .runlog import RunLogger
from .service import AnalysisService
from .settings import Settings
from .store import PredictionStore, ProfileRepository, create_all, open_engine

logger = logging.getLogger("insights.run")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    types = ", ".join(t.value for t in AnalysisType)
    parser = argparse.ArgumentParser(
        description="Insurance CRM insight engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Analysis types: {types}

Examples:
  python -m insights.run cross_sell
  python -m insights.run churn_prediction --config configs/default.yaml
  python -m insights.run --export predictions.xlsx --type churn_prediction
  python -m insights.run --segment "loyal corporate customers in Ankara"
  python -m insights.run --list
        """,
    )

    parser.add_argument(
        "analysis_type",
        nargs="?",
        help="Analysis type to run",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List all past runs",
    )
    parser.add_argument(
        "--export",
        metavar="PATH",
        help="Write stored predictions to an .xlsx file (or into a directory)",
    )
    parser.add_argument(
        "--segment",
        metavar="CRITERIA",
        help="Let the model define a custom segment and list the matching customers",
    )
    parser.add_argument(
        "--type",
        dest="export_type",
        help="Analysis type to export (defaults to the positional type)",
    )
    parser.add_argument("--min-probability", type=int)
    parser.add_argument("--max-probability", type=int)
    parser.add_argument("--search")
    parser.add_argument("--product")
    parser.add_argument("--city")
    parser.add_argument(
        "--config",
        help="Scoring config YAML (overrides INSIGHTS_SCORING_CONFIG_PATH)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Model call timeout in seconds",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (overrides INSIGHTS_LOG_LEVEL)",
    )
    return parser


def load_scoring_config(path: Optional[str]) -> ScoringConfig:
    if not path:
        return DEFAULT_CONFIG
    return ScoringConfig.from_yaml(path)


def format_segment(segment: CustomSegment, limit: int = 20) -> str:
    filters = {k: v for k, v in segment.filters.to_dict().items() if v not in (None, [])}
    lines = [
        f"{segment.title} (confidence {segment.confidence}%)",
        f"  {segment.insight}",
        f"  Filters:   {filters}",
        f"  Customers: {segment.customer_count}",
    ]
    lines.extend(f"    {cid}" for cid in segment.customer_ids[:limit])
    if segment.customer_count > limit:
        lines.append(f"    ... {segment.customer_count - limit} more")
    return "\n".join(lines)


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    config = load_scoring_config(args.config or settings.scoring_config_path)
    engine = open_engine(settings.database_url)
    client = InsightClient.from_settings(settings)
    try:
        await create_all(engine)
        store = PredictionStore(engine)
        service = AnalysisService(
            ProfileRepository(engine),
            store,
            client=client,
            config=config,
            runlog=RunLogger(settings.runs_dir),
            sample_size=settings.sample_size,
        )

        if args.analysis_type:
            run = await service.run_analysis(args.analysis_type, timeout=args.timeout)
            print(run.summary())

        if args.segment:
            segment = await service.custom_segment(args.segment, timeout=args.timeout)
            print(format_segment(segment))

        if args.export:
            flt = PredictionFilter.from_mapping({
                "analysis_type": args.export_type or args.analysis_type,
                "min_probability": args.min_probability,
                "max_probability": args.max_probability,
                "search": args.search,
                "product": args.product,
                "city": args.city,
            })
            rows = await store.query(flt)
            target = Path(args.export)
            if target.is_dir():
                target = target / export_filename(flt.analysis_type, pd.Timestamp.now())
            write_predictions_excel(rows, target, flt.analysis_type)
            print(f"Exported {len(rows)} predictions to {target}")
    finally:
        if client is not None:
            await client.close()
        await engine.dispose()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings()
    configure_logging(args.log_level or settings.log_level)

    if args.list:
        df = RunLogger(settings.runs_dir).get_summary_dataframe()
        if df.empty:
            print("No runs found.")
        else:
            print(df.to_string(index=False))
        return 0

    if not args.analysis_type and not args.export and not args.segment:
        parser.print_help()
        return 1

    try:
        return asyncio.run(run_command(args, settings))
    except (InsightError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
