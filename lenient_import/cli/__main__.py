from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from lenient_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, default_config, load_config
from lenient_import.db.connection import create_pool, resolve_dsn
from lenient_import.db.filter_query import StoredProcedureFilterEngine
from lenient_import.db.purchase_orders import PostgresPurchaseOrderStore
from lenient_import.errors import FilterQueryError, ParseError, StoreUnavailableError
from lenient_import.filters.translator import build_filter_from_query, filter_dynamic
from lenient_import.logging.error_log import ErrorLogBuffer
from lenient_import.logging.init import log_summary, setup_logging
from lenient_import.mapping.aliases import merge_aliases
from lenient_import.models.config_models import AppConfig
from lenient_import.services.importer import bulk_import, detect_mapping, test_mapping
from lenient_import.services.orchestrator import ImportOptions
from lenient_import.services.summary import render_report, render_summary_line
from lenient_import.sheets.reader import kind_from_filename, parse_sheet_data

"""Command line entry point.

    python -m lenient_import.cli [--config PATH] [--debug] <command> ...

commands:
    import FILE          parse, map, validate and persist; prints SUMMARY
    detect FILE          show the detected header mapping and confidence
    test-mapping FILE    dry run of the row validator (no database)
    filter               run a dynamic filter request against the database

Exit codes: 0 every row persisted, 2 some rows failed (or import cancelled),
1 fatal (config, parse, database connection).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """.env values override the process environment (database settings first)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="lenient-import", description="Lenient purchase-order bulk importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help=f"Config YAML (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--env-file", type=Path, default=Path(".env"), help="dotenv file to load (default: .env)")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import an xlsx/csv/json file")
    imp.add_argument("file", type=Path)
    imp.add_argument("--kind", choices=["xlsx", "csv", "json"], help="File kind (default: from extension)")
    imp.add_argument("--mapping", type=Path, help="JSON file with an explicit {field: header} mapping")
    imp.add_argument("--batch-size", type=int)
    imp.add_argument("--skip-on-error", action="store_true", default=None)
    imp.add_argument("--update-if-exists", action="store_true", default=None)
    imp.add_argument("--fuzzy", action="store_true", default=None, help="Fuzzy header matching fallback")
    imp.add_argument("--report", action="store_true", help="Print the full text report after the summary")

    det = sub.add_parser("detect", help="Detect the header mapping of a file")
    det.add_argument("file", type=Path)
    det.add_argument("--kind", choices=["xlsx", "csv", "json"])
    det.add_argument("--fuzzy", action="store_true", default=None)

    tm = sub.add_parser("test-mapping", help="Validate sample rows without persisting")
    tm.add_argument("file", type=Path)
    tm.add_argument("--kind", choices=["xlsx", "csv", "json"])
    tm.add_argument("--mapping", type=Path)
    tm.add_argument("--limit", type=int, default=10, help="Sample rows to validate (default: 10)")

    flt = sub.add_parser("filter", help="Run a dynamic filter request")
    flt.add_argument("--request", help="Filter request as JSON text or @path/to/request.json")
    flt.add_argument("--query", nargs="*", default=[], metavar="KEY=VALUE",
                     help="Flat query parameters, e.g. poDate_from=2024-01-01 brandName_op=starts_with")
    return p.parse_args(argv)


def _load_app_config(path: Path | None) -> AppConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return default_config()


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _read_mapping(path: Path | None) -> dict[str, str]:
    if path is None:
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ParseError(f"invalid mapping file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"mapping file {path} must contain an object")
    return {str(k): str(v) for k, v in data.items()}


def _read_sheet(args: argparse.Namespace) -> tuple[str, bytes]:
    kind = args.kind or kind_from_filename(args.file.name)
    try:
        content = args.file.read_bytes()
    except OSError as e:
        raise ParseError(f"cannot read {args.file}: {e}") from e
    return kind, content


def _cmd_import(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    kind, content = _read_sheet(args)
    options = ImportOptions.from_settings(
        cfg.imports,
        mapping_strategy=_read_mapping(args.mapping) or None,
        batch_size=args.batch_size,
        skip_on_error=args.skip_on_error,
        update_if_exists=args.update_if_exists,
        fuzzy_mapping=args.fuzzy,
    )
    store = PostgresPurchaseOrderStore(resolve_dsn(cfg.database), max_connections=options.batch_size)
    error_log = ErrorLogBuffer(cfg.error_log_dir) if cfg.error_log_dir else None

    cancel_event = threading.Event()

    def _on_sigint(signum, frame):  # pragma: no cover - interactive only
        logger.warning("interrupt received; finishing the current chunk")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        result = bulk_import(
            content,
            kind,
            store,
            options,
            aliases=merge_aliases(cfg.mapping.extra_aliases),
            cancel_event=cancel_event,
            error_log=error_log,
        )
    finally:
        signal.signal(signal.SIGINT, previous)
        store.close()

    summary_line = render_summary_line(result)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])
    if args.report:
        print(render_report(result), end="")

    if result.failure_count > 0 or result.cancelled:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _cmd_detect(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    kind, content = _read_sheet(args)
    sheet = parse_sheet_data(content, kind, cfg.imports.null_sentinels)
    fuzzy = cfg.imports.fuzzy_mapping if args.fuzzy is None else args.fuzzy
    detection = detect_mapping(sheet.headers, merge_aliases(cfg.mapping.extra_aliases), fuzzy=fuzzy)
    _print_json({
        "mapping": detection.mapping,
        "scores": detection.scores,
        "unmappedHeaders": detection.unmapped_headers,
        "confidence": round(detection.confidence, 4),
    })
    return EXIT_SUCCESS_ALL


def _cmd_test_mapping(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    kind, content = _read_sheet(args)
    sheet = parse_sheet_data(content, kind, cfg.imports.null_sentinels)
    mapping = _read_mapping(args.mapping)
    if not mapping:
        mapping = detect_mapping(
            sheet.headers, merge_aliases(cfg.mapping.extra_aliases), fuzzy=cfg.imports.fuzzy_mapping,
        ).mapping
    outcome = test_mapping(sheet.rows[: max(1, args.limit)], mapping)
    _print_json({
        "mapping": mapping,
        "summary": outcome.summary,
        "rows": [
            {
                "rowIndex": r.row_index,
                "status": r.status.value,
                "data": r.data,
                "errors": [e.to_dict() for e in r.errors],
            }
            for r in outcome.validated_rows
        ],
    })
    return EXIT_SUCCESS_ALL


def _filter_request(args: argparse.Namespace) -> dict[str, Any]:
    if args.request:
        text = args.request
        if text.startswith("@"):
            try:
                text = Path(text[1:]).read_text(encoding="utf-8")
            except OSError as e:
                raise ParseError(f"cannot read filter request: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"filter request is not valid JSON: {e}") from e
    query: dict[str, str] = {}
    for item in args.query:
        key, sep, value = item.partition("=")
        if not sep:
            raise ParseError(f"query parameter must be KEY=VALUE: {item!r}")
        query[key] = value
    return build_filter_from_query(query)


def _cmd_filter(args: argparse.Namespace, cfg: AppConfig, logger) -> int:
    request = _filter_request(args)
    pool = create_pool(resolve_dsn(cfg.database), 1)
    try:
        engine = StoredProcedureFilterEngine(pool=pool, procedure=cfg.filters.procedure)
        page = filter_dynamic(request, engine, default_sort_by=cfg.filters.default_sort_by)
    finally:
        pool.closeall()
    _print_json(page.to_dict())
    return EXIT_SUCCESS_ALL


_COMMANDS = {
    "import": _cmd_import,
    "detect": _cmd_detect,
    "test-mapping": _cmd_test_mapping,
    "filter": _cmd_filter,
}


def main(argv: list[str] | None = None) -> int:
    # only read sys.argv when argv is None; an explicit [] must stay empty
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(args.env_file, override=True)
    try:
        cfg = _load_app_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        return _COMMANDS[args.command](args, cfg, logger)
    except ParseError as e:
        logger.error(f"parse: {e}")
        return EXIT_FATAL
    except StoreUnavailableError as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    except FilterQueryError as e:
        logger.error(f"filter: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
