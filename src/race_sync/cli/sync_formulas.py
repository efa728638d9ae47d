import argparse
from typing import Sequence

from race_sync.commands.jobs import run_formula_sync


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="race-formula-sync")
    parser.add_argument(
        "--columns",
        nargs="+",
        help="Only sync these TEE columns, as letters or numbers (e.g. Z AA 28)",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Clear full-sync progress so the next run processes every dated sheet",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return int(run_formula_sync(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
