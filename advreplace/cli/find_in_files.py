"""advreplace-find-in-files: search the file store with a regular expression."""
import argparse

from advreplace.cli.common import console, error, print_output, progress_bar, setup_logging
from advreplace.db.session import SessionLocal
from advreplace.models.file_search import FileSearch
from advreplace.services.errors import AdvReplaceError
from advreplace.services.file_search import search_files
from advreplace.services.file_storage import FileStorage
from advreplace.services.jobs import create_file_search, fail_job


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="advreplace-find-in-files",
        description="Search stored files with a regular expression. Results are written as CSV.",
    )
    parser.add_argument("--regex-match", required=True, help="Regular expression to search for (case-insensitive)")
    parser.add_argument("--output", help="CSV file to write (default: stdout)")

    files = parser.add_argument_group("file filters", "comma separated lists")
    files.add_argument("--components", help="Components to search; component or component:filearea")
    files.add_argument("--skip-components", help="Components to skip")
    files.add_argument("--mimetypes", help="Mimetypes to search")
    files.add_argument("--skip-mimetypes", help="Mimetypes to skip")
    files.add_argument("--filenames", help="File names to search")
    files.add_argument("--skip-filenames", help="File names to skip")
    files.add_argument("--skip-areas", help="File areas to skip")

    zips = parser.add_argument_group("archives", "filters are regular expressions on the archive members")
    zips.add_argument(
        "--open-zips",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Search inside zip archives (default: only h5p packages are opened)",
    )
    zips.add_argument("--zip-filenames", help="Only search members whose name matches")
    zips.add_argument("--skip-zip-filenames", help="Skip members whose name matches")
    zips.add_argument("--zip-mimetypes", help="Only search members whose mimetype matches")
    zips.add_argument("--skip-zip-mimetypes", help="Skip members whose mimetype matches")

    parser.add_argument("--name", help="Name of the search, used for the result file")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    db = SessionLocal()
    job = None
    try:
        job = create_file_search(
            db,
            pattern=args.regex_match,
            components=args.components,
            skip_components=args.skip_components,
            mimetypes=args.mimetypes,
            skip_mimetypes=args.skip_mimetypes,
            filenames=args.filenames,
            skip_filenames=args.skip_filenames,
            skip_areas=args.skip_areas,
            open_zips=args.open_zips,
            zip_filenames=args.zip_filenames,
            skip_zip_filenames=args.skip_zip_filenames,
            zip_mimetypes=args.zip_mimetypes,
            skip_zip_mimetypes=args.skip_zip_mimetypes,
            name=args.name,
            origin="cli",
        )

        storage = FileStorage()
        with progress_bar("Searching files") as on_progress:
            matches = search_files(db, job, output=args.output, on_progress=on_progress, storage=storage)

        if not args.output:
            print_output(storage.temp_path(FileSearch.FILEAREA, job.id))
        console.print(f"✅ File search {job.id} complete: {matches} matches", style="bold green")
        if job.skipped_containers:
            console.print(f"⚠️  {job.skipped_containers} archives could not be opened", style="yellow")
        return 0
    except AdvReplaceError as e:
        if job is not None:
            fail_job(db, FileSearch, job.id, str(e))
        return error(str(e))
    except Exception as e:
        if job is not None:
            fail_job(db, FileSearch, job.id, str(e) or e.__class__.__name__)
        raise
    finally:
        db.close()


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()
