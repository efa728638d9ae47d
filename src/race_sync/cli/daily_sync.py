import argparse
from typing import Sequence

from race_sync.commands.jobs import run_daily_sync


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="race-daily-sync")
    parser.add_argument(
        "--catch-up",
        action="store_true",
        help="Sync every missing date from the latest one in DATABASE through yesterday",
    )
    parser.add_argument("--skip-tee", action="store_true", help="Only update DATABASE, leave TEE alone")
    parser.add_argument("--totals", action="store_true", help="Append missing TOTALS rows afterwards")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return int(run_daily_sync(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
