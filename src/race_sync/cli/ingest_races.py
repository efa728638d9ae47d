import argparse
from typing import Sequence

from race_sync.commands.jobs import run_ingest


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="race-ingest")
    parser.add_argument(
        "--historical",
        action="store_true",
        help="Ingest past race sheets one at a time instead of today's races",
    )
    parser.add_argument(
        "--sheet",
        action="append",
        help="Repeatable sheet name to limit historical ingestion or marker clearing",
    )
    parser.add_argument("--force", action="store_true", help="Re-ingest sheets already marked as ingested")
    parser.add_argument("--clear-markers", action="store_true", help="Clear the ingestion markers and exit")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return int(run_ingest(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
