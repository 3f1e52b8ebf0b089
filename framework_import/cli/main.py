from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
import redis
from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.connection import db_connection
from ..db.framework_store import ensure_schema
from ..errors import FrameworkImportError, MalformedInputError
from ..logging.init import enable_debug, log_summary, setup_logging
from ..logging.issue_log import IssueLogBuffer, IssueRecord
from ..models.config_models import ImportConfig
from ..models.preview import ImportContext
from ..services.directory import DirectoryImportError, import_directory
from ..services.orchestrator import FrameworkImportService
from ..services.summary import render_confirm_line, render_directory_line, render_preview_line
from ..services.synchronizer import FrameworkSynchronizer
from ..services.template import generate_template
from ..staging.store import create_preview_store

"""CLI entrypoint: `python -m framework_import.cli <command>`.

Commands:
- template               print the CSV template
- init-db                create importer tables
- preview FILE           validate + stage, print token and SUMMARY line
- confirm TOKEN          commit a staged preview
- import-dir             preview + confirm every CSV in source_directory
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2  # preview with errors / directory import not fully imported

# ストア (PostgreSQL / Redis) 由来のドライバ例外
STORAGE_ERRORS = (psycopg2.Error, redis.RedisError)


@contextmanager
def _open_service(cfg: ImportConfig) -> Iterator[FrameworkImportService]:
    """Wire store + synchronizer on one PostgreSQL connection."""
    with db_connection(cfg.database) as conn:
        store = create_preview_store(cfg.staging, conn)
        yield FrameworkImportService(store, FrameworkSynchronizer(conn))


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values win over the existing environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _add_identity_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--org", required=True, dest="organization_id", help="Organization id of the caller")
    p.add_argument("--user", default="system", dest="uploaded_by", help="User performing the import")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="CSV -> assessment framework importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to import.yml")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("template", help="Print the CSV import template")
    sub.add_parser("init-db", help="Create importer tables if missing")

    preview = sub.add_parser("preview", help="Validate a CSV file and stage it for confirmation")
    preview.add_argument("file", type=Path)
    preview.add_argument("--json", action="store_true", help="Print the full preview as JSON")
    _add_identity_args(preview)

    confirm = sub.add_parser("confirm", help="Commit a staged preview")
    confirm.add_argument("token")
    _add_identity_args(confirm)

    import_dir = sub.add_parser("import-dir", help="Preview and confirm every CSV in source_directory")
    import_dir.add_argument("--directory", type=Path, default=None, help="Override source_directory")
    _add_identity_args(import_dir)
    return p.parse_args(argv)


def _cmd_preview(cfg: ImportConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    context = ImportContext(args.organization_id, args.uploaded_by)
    issue_log = IssueLogBuffer()
    try:
        data = args.file.read_bytes()
    except OSError as e:
        logger.error(f"preview: cannot read {args.file}: {e}")
        return EXIT_FATAL
    try:
        with _open_service(cfg) as service:
            result = service.preview_import(data, context, filename=args.file.name)
    except MalformedInputError as e:
        logger.error(f"preview: {e}")
        issue_log.append(IssueRecord.create(args.file.name, -1, "rejected", str(e)))
        issue_log.flush()
        return EXIT_FATAL
    except STORAGE_ERRORS as e:
        logger.error(f"preview: storage failure: {e}")
        return EXIT_FATAL

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    logger.info(f"preview token: {result.preview_token}")
    for outcome in result.rows:
        for issue in outcome.issues:
            logger.warning(f"row {outcome.row_number}: {issue}")
    issue_log.add_preview(args.file.name, result)
    log_path = issue_log.flush()
    if log_path is not None:
        logger.info(f"issues written to {log_path}")
    log_summary(render_preview_line(result))
    return EXIT_PARTIAL_FAILURE if result.summary.errors else EXIT_SUCCESS_ALL


def _cmd_confirm(cfg: ImportConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    context = ImportContext(args.organization_id, args.uploaded_by)
    try:
        with _open_service(cfg) as service:
            result = service.confirm_import(args.token, context)
    except FrameworkImportError as e:
        logger.error(f"confirm: {e}")
        return EXIT_FATAL
    except STORAGE_ERRORS as e:
        logger.error(f"confirm: storage failure: {e}")
        return EXIT_FATAL
    log_summary(render_confirm_line(result))
    return EXIT_SUCCESS_ALL


def _cmd_import_dir(cfg: ImportConfig, args: argparse.Namespace, logger: logging.Logger) -> int:
    context = ImportContext(args.organization_id, args.uploaded_by)
    directory = args.directory or Path(cfg.source_directory)
    logger.info(f"Processing files from: {directory}")
    issue_log = IssueLogBuffer()
    try:
        with _open_service(cfg) as service:
            result = import_directory(service, directory, context, issue_log)
    except DirectoryImportError as e:
        logger.error(f"import-dir: {e}")
        return EXIT_FATAL
    except STORAGE_ERRORS as e:
        logger.error(f"import-dir: storage failure: {e}")
        return EXIT_FATAL
    finally:
        issue_log.flush()

    log_summary(render_directory_line(result))
    if result.blocked_files or result.failed_files:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _cmd_init_db(cfg: ImportConfig, logger: logging.Logger) -> int:
    with db_connection(cfg.database) as conn:
        with conn.cursor() as cur:
            ensure_schema(cur)
        conn.commit()
    logger.info("importer tables ready")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: [] が渡された場合に sys.argv へフォールバックしないよう None のみ判定
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        enable_debug().debug("debug mode enabled")

    if args.command == "template":
        sys.stdout.write(generate_template())
        return EXIT_SUCCESS_ALL

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "init-db":
        return _cmd_init_db(cfg, logger)
    if args.command == "preview":
        return _cmd_preview(cfg, args, logger)
    if args.command == "confirm":
        return _cmd_confirm(cfg, args, logger)
    return _cmd_import_dir(cfg, args, logger)
