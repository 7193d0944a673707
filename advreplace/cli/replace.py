"""advreplace-replace: apply the replacements filled in a search result file."""
import argparse
from pathlib import Path

from advreplace.cli.common import console, error, progress_bar, setup_logging
from advreplace.db.session import SessionLocal
from advreplace.services.errors import AdvReplaceError
from advreplace.services.replace import replace_from_csv


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="advreplace-replace",
        description=(
            "Replace text in the database from a CSV file with at least the columns "
            "table, column, id, match and replace. Rows with an empty replace are skipped."
        ),
    )
    parser.add_argument("--input", required=True, help="CSV file produced by advreplace-find, replace column filled in")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    path = Path(args.input)
    if not path.is_file():
        return error(f"File not found: {path}")

    db = SessionLocal()
    try:
        with progress_bar("Replacing") as on_progress:
            result = replace_from_csv(db, path, on_progress=on_progress)
    except AdvReplaceError as e:
        return error(str(e))
    finally:
        db.close()

    console.print(
        f"✅ {result.processed} replacements applied ({result.updated} rows updated), "
        f"{result.skipped} skipped, {result.failed} failed",
        style="bold green" if not result.failed else "bold yellow",
    )
    return 0 if not result.failed else 1


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
