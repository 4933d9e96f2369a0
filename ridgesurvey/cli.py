"""Command-line entry point.

    ridgesurvey init <out.yaml>
    ridgesurvey search <query> [--limit N]
    ridgesurvey route <token> [<token> ...]
    ridgesurvey districts

Every command except ``init`` reads data paths from the config
(``--config``, ``$RIDGESURVEY_CONFIG`` or a ``ridgesurvey.yaml`` found
from the working directory upwards).
"""

from __future__ import annotations

from typing import List, Optional
import argparse
import json
import logging
import sys

from .config import discover_config, write_template
from .engine import SurveyEngine
from .scheduler import ManualScheduler

logger = logging.getLogger(__name__)


def _engine(cfg_path: Optional[str]) -> SurveyEngine:
    settings = discover_config(cfg_path)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if not settings.buildings_path or not settings.district_paths:
        print(
            "Config must set data_sources.buildings and data_sources.districts",
            file=sys.stderr,
        )
        sys.exit(2)
    # scripted sessions never wait on real timers
    return SurveyEngine.from_files(
        settings.buildings_path,
        settings.district_paths,
        settings=settings,
        scheduler=ManualScheduler(),
    )


def _cmd_init(out_path: str) -> None:
    try:
        p = write_template(out_path)
    except FileExistsError:
        print(f"Refusing to overwrite existing file: {out_path}", file=sys.stderr)
        sys.exit(2)
    print(f"Wrote starter config with schema hints: {p}")


def _cmd_search(cfg_path: Optional[str], query: str, limit: Optional[int]) -> None:
    engine = _engine(cfg_path)
    outcome = engine.lookup(query, limit=limit)
    if not outcome.ok:
        print(
            f"Please enter at least {engine.settings.min_search_length} characters.",
            file=sys.stderr,
        )
        sys.exit(1)
    for bid, score in zip(outcome.ids, outcome.scores):
        b = engine[bid]
        print(f"{score:>3}  {bid:>10}  {b.display_address}")


def _cmd_route(cfg_path: Optional[str], tokens: List[str]) -> None:
    engine = _engine(cfg_path)
    for token in tokens:
        res = engine.navigate(token)
        print(json.dumps(res.to_dict(), sort_keys=True))


def _cmd_districts(cfg_path: Optional[str]) -> None:
    engine = _engine(cfg_path)
    df = engine.index.to_df()
    print(df.to_string(index=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ridgesurvey", description="Browse and search a building survey catalog."
    )
    parser.add_argument("--config", "-c", dest="config", default=None, help="Path to a YAML/TOML config")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init", help="Write a starter config")
    p_init.add_argument("out_path")

    p_search = sub.add_parser("search", help="Fuzzy address search")
    p_search.add_argument("query")
    p_search.add_argument("--limit", type=int, default=None)

    p_route = sub.add_parser("route", help="Replay navigation tokens and print each resolution")
    p_route.add_argument("tokens", nargs="+")

    sub.add_parser("districts", help="District membership counts")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "init":
            _cmd_init(args.out_path)
        elif args.command == "search":
            _cmd_search(args.config, args.query, args.limit)
        elif args.command == "route":
            _cmd_route(args.config, args.tokens)
        elif args.command == "districts":
            _cmd_districts(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ridgesurvey: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
