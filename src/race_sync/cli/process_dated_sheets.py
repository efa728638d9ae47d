import argparse
from typing import Sequence

from race_sync.commands.jobs import run_dated_sheets


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="race-dated-sheets")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear the extracted flags in DATABASE column G so every row is copied again",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return int(run_dated_sheets(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
