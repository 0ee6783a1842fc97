import argparse
import signal
import sys
from contextlib import contextmanager
from pathlib import Path

from . import __version__
from .cancel import CancelToken
from .client import SightMapClient
from .config import Settings
from .env import load_env
from .export import (
    ASSET_COLUMNS,
    ASSET_REFERENCE_COLUMNS,
    RESULT_COLUMNS,
    UNIT_REFERENCE_COLUMNS,
    asset_reference_rows,
    asset_rows,
    result_rows,
    save_json,
    to_tsv,
    unit_reference_rows,
    write_csv,
)
from .inputs import read_asset_ids, read_records, template
from .logger import get_logger
from .models import InputRecord
from .pipeline import (
    RunResult,
    run_asset_list,
    run_asset_references,
    run_global_search,
    run_name_search,
    run_reference_match,
    run_unit_references,
)

logger = get_logger()

# Workflows whose results are raw rows rather than match results.
ROW_EXPORTS = {
    "unit-refs": (unit_reference_rows, UNIT_REFERENCE_COLUMNS),
    "asset-refs": (asset_reference_rows, ASSET_REFERENCE_COLUMNS),
    "assets": (asset_rows, ASSET_COLUMNS),
}


@contextmanager
def cancel_on_interrupt(token: CancelToken):
    """Ctrl-C cancels the run cooperatively instead of killing it mid-batch."""
    def _handler(signum, frame):
        print("\nCancelling... waiting for in-flight requests to be abandoned.", file=sys.stderr)
        token.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


def print_progress(stage: str, done: int, total) -> None:
    if stage == "catalog":
        print(f"Fetching asset list... {done} / {total or '?'}", file=sys.stderr)
    else:
        print(f"Deep scanning: {done} / {total} assets", file=sys.stderr)


def build_settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env().with_overrides(
        api_key=getattr(args, "api_key", None),
        base_url=getattr(args, "base_url", None),
        batch_size=getattr(args, "batch_size", None),
    )


def build_client(settings: Settings) -> SightMapClient:
    try:
        return SightMapClient(
            api_key=settings.api_key,
            base_url=settings.base_url,
            per_page=settings.per_page,
            timeout=settings.timeout,
            page_retries=settings.page_retries,
        )
    except ValueError as e:
        raise SystemExit(str(e))


def emit(rows, columns, output: str | None) -> None:
    if not output:
        sys.stdout.write(to_tsv(rows, columns))
        return
    path = Path(output)
    if path.suffix.lower() == ".json":
        save_json(path, rows)
    elif path.suffix.lower() in (".tsv", ".txt"):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(to_tsv(rows, columns), encoding="utf-8")
    else:
        write_csv(path, rows, columns)
    print(f"Wrote {len(rows)} rows to {path}", file=sys.stderr)


def report(run: RunResult, output: str | None) -> None:
    print(run.summary(), file=sys.stderr)
    logger.log_metrics_summary()
    if run.failed:
        raise SystemExit(1)
    if run.cancelled and not run.results:
        raise SystemExit(130)
    if run.workflow in ROW_EXPORTS:
        to_rows, columns = ROW_EXPORTS[run.workflow]
        if run.workflow == "assets":
            print(f"Showing {len(run.results)} of {run.catalog_size} assets.", file=sys.stderr)
        emit(to_rows(run.results), columns, output)
    else:
        print(f"Matched {run.matched_count} of {len(run.results)} inputs.", file=sys.stderr)
        emit(result_rows(run.results), RESULT_COLUMNS, output)
    if run.cancelled:
        raise SystemExit(130)


def _records_from_args(args: argparse.Namespace, kind: str) -> list[InputRecord]:
    if args.input:
        try:
            records = read_records(Path(args.input), kind)
        except FileNotFoundError as e:
            raise SystemExit(str(e))
        if not records:
            raise SystemExit("No valid rows found.")
        return records
    if not args.name:
        raise SystemExit("Provide --input CSV or at least --name.")
    return [
        InputRecord(
            name=args.name.strip(),
            address=(getattr(args, "address", None) or "").strip() or None,
            city=(args.city or "").strip() or None,
            state=(args.state or "").strip() or None,
        )
    ]


def cmd_ref_match(args: argparse.Namespace) -> None:
    if not args.global_scope and not args.account_id:
        raise SystemExit("Provide --account-id or --global.")
    try:
        records = read_records(Path(args.input), "reference")
    except FileNotFoundError as e:
        raise SystemExit(str(e))
    if not records:
        raise SystemExit("No valid rows found.")

    settings = build_settings(args)
    client = build_client(settings)
    account_id = None if args.global_scope else args.account_id
    with cancel_on_interrupt(CancelToken()) as token:
        run = run_reference_match(
            client,
            records,
            account_id=account_id,
            batch_size=settings.batch_size,
            token=token,
            on_progress=print_progress,
        )
    report(run, args.output)


def cmd_search(args: argparse.Namespace) -> None:
    records = _records_from_args(args, "location")
    client = build_client(build_settings(args))
    with cancel_on_interrupt(CancelToken()) as token:
        run = run_name_search(client, records, args.account_id, token=token, on_progress=print_progress)
    report(run, args.output)


def cmd_global_search(args: argparse.Namespace) -> None:
    records = _records_from_args(args, "address")
    client = build_client(build_settings(args))
    with cancel_on_interrupt(CancelToken()) as token:
        run = run_global_search(client, records, token=token, on_progress=print_progress)
    report(run, args.output)


def _asset_ids_from_args(args: argparse.Namespace) -> list[str]:
    asset_ids = list(args.asset_id or [])
    if args.input:
        try:
            asset_ids.extend(read_asset_ids(Path(args.input)))
        except FileNotFoundError as e:
            raise SystemExit(str(e))
    if not asset_ids:
        raise SystemExit("No asset IDs given. Use --asset-id or --input (header: asset_id).")
    return asset_ids


def cmd_unit_refs(args: argparse.Namespace) -> None:
    asset_ids = _asset_ids_from_args(args)

    settings = build_settings(args)
    client = build_client(settings)
    with cancel_on_interrupt(CancelToken()) as token:
        run = run_unit_references(
            client, asset_ids, batch_size=settings.batch_size, token=token, on_progress=print_progress
        )
    report(run, args.output)


def cmd_asset_refs(args: argparse.Namespace) -> None:
    asset_ids = _asset_ids_from_args(args)
    settings = build_settings(args)
    client = build_client(settings)
    with cancel_on_interrupt(CancelToken()) as token:
        run = run_asset_references(
            client, asset_ids, batch_size=settings.batch_size, token=token, on_progress=print_progress
        )
    report(run, args.output)


def cmd_assets(args: argparse.Namespace) -> None:
    client = build_client(build_settings(args))
    with cancel_on_interrupt(CancelToken()) as token:
        run = run_asset_list(
            client,
            account_id=args.account_id,
            city=args.city,
            state=args.state,
            tag=args.tag,
            token=token,
            on_progress=print_progress,
        )
    report(run, args.output)


def cmd_template(args: argparse.Namespace) -> None:
    try:
        content = template(args.kind)
    except ValueError as e:
        raise SystemExit(str(e))
    if args.output:
        Path(args.output).write_text(content, encoding="utf-8")
        print(f"Wrote {args.kind} template to {args.output}")
        return
    sys.stdout.write(content)


def main(argv=None):
    load_env()
    settings = Settings.from_env()
    logger.configure(
        level=settings.log_level,
        log_dir=settings.log_dir,
        enable_file=settings.log_to_file,
    )

    parser = argparse.ArgumentParser(prog="assetmatch", description="Match property records to SightMap assets")
    parser.add_argument("--version", action="store_true", help="Show version")

    api = argparse.ArgumentParser(add_help=False)
    api.add_argument("--api-key", help="SightMap API key (or set SIGHTMAP_API_KEY)")
    api.add_argument("--base-url", help="API base URL (default: https://api.sightmap.com/v1)")
    api.add_argument("--output", help="Write results to .csv, .tsv or .json (default: TSV on stdout)")

    subparsers = parser.add_subparsers(dest="command")

    ref = subparsers.add_parser("ref-match", parents=[api], help="Deep scan asset references and match by reference ID, then name")
    ref.add_argument("--input", required=True, help="CSV with property name and reference ID columns")
    ref.add_argument("--account-id", help="Account whose assets are scanned")
    ref.add_argument("--global", dest="global_scope", action="store_true", help="Scan the global asset list instead of one account")
    ref.add_argument("--batch-size", type=int, help="Concurrent reference requests per batch (default 5)")
    ref.set_defaults(func=cmd_ref_match)

    srch = subparsers.add_parser("search", parents=[api], help="Fuzzy match by name, city and state within one account")
    srch.add_argument("--account-id", required=True, help="Account whose assets are searched")
    srch.add_argument("--input", help="CSV: Property Name,City,State")
    srch.add_argument("--name", help="Property name (single search)")
    srch.add_argument("--city", help="City (single search)")
    srch.add_argument("--state", help="State (single search)")
    srch.set_defaults(func=cmd_search)

    glob = subparsers.add_parser("global-search", parents=[api], help="Fuzzy match by name and street address across all assets")
    glob.add_argument("--input", help="CSV: Name,Address,City,State")
    glob.add_argument("--name", help="Property name (single search)")
    glob.add_argument("--address", help="Street address (single search)")
    glob.add_argument("--city", help="City (single search)")
    glob.add_argument("--state", help="State (single search)")
    glob.set_defaults(func=cmd_global_search)

    units = subparsers.add_parser("unit-refs", parents=[api], help="List unit references (reference groups) for assets")
    units.add_argument("--asset-id", action="append", help="Asset ID; repeat for several")
    units.add_argument("--input", help="CSV with an asset_id column")
    units.add_argument("--batch-size", type=int, help="Assets scanned concurrently per batch (default 5)")
    units.set_defaults(func=cmd_unit_refs)

    refs = subparsers.add_parser("asset-refs", parents=[api], help="List asset-level references for assets")
    refs.add_argument("--asset-id", action="append", help="Asset ID; repeat for several")
    refs.add_argument("--input", help="CSV with an asset_id column")
    refs.add_argument("--batch-size", type=int, help="Assets scanned concurrently per batch (default 5)")
    refs.set_defaults(func=cmd_asset_refs)

    assets = subparsers.add_parser("assets", parents=[api], help="List catalog assets, optionally filtered")
    assets.add_argument("--account-id", help="Account to list (default: the global asset list)")
    assets.add_argument("--city", help="Keep assets whose city contains this text")
    assets.add_argument("--state", help="Keep assets whose state contains this text")
    assets.add_argument("--tag", help="Keep assets with a tag containing this text")
    assets.set_defaults(func=cmd_assets)

    tmpl = subparsers.add_parser("template", help="Print a CSV input template")
    tmpl.add_argument("kind", choices=["reference", "location", "address", "unit-refs", "asset-refs"], help="Workflow the template is for")
    tmpl.add_argument("--output", help="Write the template to this path")
    tmpl.set_defaults(func=cmd_template)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
