from __future__ import annotations

import argparse
import os
import signal
import sys
import threading
from pathlib import Path

from dotenv import load_dotenv

from glitter_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from glitter_import.csvfile.reader import CsvReadError, read_csv_rows
from glitter_import.logging.error_log import ErrorLogBuffer
from glitter_import.logging.init import log_summary, set_debug, setup_logging
from glitter_import.models.import_stats import ImportOutcome, ImportStats
from glitter_import.models.session import Session
from glitter_import.services.column_analysis import analyze_columns
from glitter_import.services.notifications import LogNotifier
from glitter_import.services.orchestrator import ProcessingError, import_from_csv
from glitter_import.services.summary import render_summary_line
from glitter_import.storage.base import RecordStore
from glitter_import.storage.memory import InMemoryRecordStore
from glitter_import.storage.postgres import PostgresRecordStore, connect, ensure_schema

"""CLI entrypoint: ``python -m glitter_import.cli FILE``.

- Load .env (override) and the YAML config
- Import the CSV into PostgreSQL, or into an in-memory store (mock mode) when
  the database is unreachable / disabled
- Print one SUMMARY line and exit with 0 (all rows ok), 2 (partial failure,
  warnings, nothing imported) or 1 (fatal)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

USER_ENV = "GLITTER_USER_ID"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="CSV -> project bulk importer")
    p.add_argument("file", type=Path, help="CSV file to import")
    p.add_argument("--config", type=Path, default=None, help=f"Config YAML (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--user", default=None, help=f"User id to import for (default: ${USER_ENV} or config user_id)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print header mapping & first rows then exit")
    p.add_argument("--mock", action="store_true", help="Use the in-memory store (no database)")
    return p.parse_args(argv)


def _resolve_config(path: Path | None) -> ImportConfig:
    if path is not None:
        return load_config(path)
    # 既定パスが無ければデフォルト設定で続行
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return ImportConfig()


def _inspect_data(file: Path) -> int:
    try:
        parsed = read_csv_rows(file, transform_header=str.strip)
    except CsvReadError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    analysis = analyze_columns(parsed.headers)
    print(f"FILE: {file.name} rows={len(parsed.rows)}")
    for field_name, header in analysis.mapped.items():
        print(f"  {field_name:<15} <- {header}")
    if analysis.missing_required:
        print(f"  missing_required={analysis.missing_required}")
    if analysis.missing_optional:
        print(f"  missing_optional={analysis.missing_optional}")
    if analysis.unmapped:
        print(f"  unmapped={analysis.unmapped}")
    for w in parsed.warnings:
        print(f"  warning: {w}")
    print("  sample_rows=", parsed.rows[:3])
    return 0 if analysis.is_importable else EXIT_PARTIAL_FAILURE


def _exit_code(stats: ImportStats) -> int:
    if stats.outcome is ImportOutcome.ALL_SUCCEEDED:
        return EXIT_SUCCESS_ALL
    return EXIT_PARTIAL_FAILURE


def _run(file: Path, store: RecordStore, session: Session, cfg: ImportConfig) -> ImportStats:
    """Run one import. Ctrl-C stops before the next row instead of aborting mid-row."""
    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        return import_from_csv(
            file,
            store=store,
            session=session,
            config=cfg,
            notifier=LogNotifier(),
            cancel_event=cancel,
            error_log=ErrorLogBuffer(cfg.logs_dir),
        )
    finally:
        signal.signal(signal.SIGINT, previous)


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストで main([...]) を呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        cfg = _resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(args.file)

    session = Session(user_id=args.user or os.getenv(USER_ENV) or cfg.user_id)
    logger.info(f"Importing {args.file} for user={session.user_id}")

    # DB 接続制御: --mock または DISABLE_DB_CONNECT=1 で完全に無効化
    disable_db = args.mock or os.getenv("DISABLE_DB_CONNECT") == "1"
    db_mode = "mock"
    try:
        if disable_db:
            logger.debug("DB connect disabled -> mock mode")
            stats = _run(args.file, InMemoryRecordStore(), session, cfg)
        else:
            try:
                with connect(cfg.database) as conn:
                    ensure_schema(conn)
                    db_mode = "live"
                    stats = _run(args.file, PostgresRecordStore(conn), session, cfg)
            except (ProcessingError, CsvReadError):
                raise
            except Exception as db_e:
                if db_mode == "live":
                    raise
                if os.getenv("SUPPRESS_DB_WARNING") == "1":
                    logger.debug(f"DB connection failed (suppressed) -> fallback to mock mode: {db_e}")
                else:
                    logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
                stats = _run(args.file, InMemoryRecordStore(), session, cfg)
    except (ProcessingError, CsvReadError) as e:
        logger.error(f"import: {e}")
        return EXIT_FATAL

    logger.info(f"mode={db_mode} projects={stats.successful}/{stats.total}")

    summary_line = render_summary_line(stats)
    # log_summary が "SUMMARY " を付けるため先頭を除去
    log_summary(summary_line[len("SUMMARY "):])

    return _exit_code(stats)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
