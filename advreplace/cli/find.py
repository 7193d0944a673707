"""advreplace-find: search text throughout the whole database."""
import argparse

from advreplace.cli.common import console, error, print_output, progress_bar, setup_logging
from advreplace.db.session import SessionLocal
from advreplace.models.search import Search
from advreplace.services.db_search import search_db
from advreplace.services.errors import AdvReplaceError
from advreplace.services.file_storage import FileStorage
from advreplace.services.jobs import create_search, fail_job


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="advreplace-find",
        description="Search text throughout the whole database. Results are written as CSV.",
    )
    parser.add_argument("--search", help="Text to search for (case-insensitive)")
    parser.add_argument("--regex-match", help="Regular expression to search for")
    parser.add_argument("--prematch", help="Plain text every regex match contains; narrows rows before the regex runs")
    parser.add_argument("--output", help="CSV file to write (default: stdout)")
    parser.add_argument("--tables", help="Tables to search: table or table:column, comma separated")
    parser.add_argument("--skip-tables", help="Tables to skip, comma separated")
    parser.add_argument("--skip-columns", help="Columns to skip, comma separated")
    parser.add_argument("--summary", action="store_true", help="Only list the columns holding a match")
    parser.add_argument("--name", help="Name of the search, used for the result file")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    db = SessionLocal()
    job = None
    try:
        job = create_search(
            db,
            search=args.search,
            regex_match=args.regex_match,
            prematch=args.prematch,
            tables=args.tables,
            skip_tables=args.skip_tables,
            skip_columns=args.skip_columns,
            summary=args.summary,
            name=args.name,
            origin="cli",
        )

        storage = FileStorage()
        with progress_bar("Searching") as on_progress:
            matches = search_db(db, job, output=args.output, on_progress=on_progress, storage=storage)

        if not args.output:
            print_output(storage.temp_path(Search.FILEAREA, job.id))
        console.print(f"✅ Search {job.id} complete: {matches} matches", style="bold green")
        return 0
    except AdvReplaceError as e:
        if job is not None:
            fail_job(db, Search, job.id, str(e))
        return error(str(e))
    except Exception as e:
        if job is not None:
            fail_job(db, Search, job.id, str(e) or e.__class__.__name__)
        raise
    finally:
        db.close()


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
