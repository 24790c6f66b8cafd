#!/usr/bin/env python3
"""
CLI for the folder archiver.

Usage:
    python -m src.cli run --config Config.json
    python -m src.cli run --config Config.json --polling --log-file archiver.log
    python -m src.cli init --config Config.json
"""

import argparse
import logging
import os
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from src.archiver import (
    ArchiverProcess,
    ArchiverSettings,
    ConfigFileError,
    load_or_create,
    write_default_config,
)
from src.archiver.config import DEFAULT_CONFIG_FILE


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("cli")


def setup_logging(level: str, log_file: Optional[Path] = None) -> None:
    """Configure console logging at level, plus a DEBUG file log if requested."""
    console_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    # Console handler - keeps its own level when the root is lowered for the file log
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(console_level)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.DEBUG)


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def cmd_run(args) -> int:
    """Run the archiver until interrupted."""
    config_path = Path(args.config)

    try:
        configs = load_or_create(config_path)
    except ConfigFileError as e:
        logger.error(str(e))
        return 1

    if configs is None:
        return 1
    if not configs:
        logger.error(f"No valid monitor configurations in {config_path}")
        return 1

    settings = ArchiverSettings(
        use_polling=args.polling,
        shutdown_grace_s=args.grace,
    )

    shutdown = GracefulShutdown()

    with ArchiverProcess(configs, settings) as archiver:
        archiver.start_async()

        if not archiver.supervisors:
            logger.error("No monitored directory could be started")
            return 1

        for supervisor in archiver.supervisors:
            logger.info(f"  - {supervisor.config.source_folder} -> {supervisor.config.archive_folder}")
        logger.info("Press Ctrl+C to stop")

        while not shutdown.should_exit:
            if not any(s.is_running for s in archiver.supervisors):
                logger.error("All monitored directories have stopped")
                break
            time.sleep(0.5)

    return 0


def cmd_init(args) -> int:
    """Write a template configuration file."""
    config_path = Path(args.config)
    if config_path.exists() and not args.force:
        logger.error(f"{config_path} already exists, use --force to overwrite")
        return 1
    write_default_config(config_path)
    logger.info(f"Wrote template configuration to {config_path.resolve()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    default_config = os.environ.get("ARCHIVER_CONFIG", DEFAULT_CONFIG_FILE)
    default_level = os.environ.get("ARCHIVER_LOG_LEVEL", "INFO")

    parser = argparse.ArgumentParser(
        description="Archive newly created files after a delay if their content is unchanged",
    )
    parser.add_argument(
        "--log-level",
        default=default_level,
        help="Console log level (default: %(default)s)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write DEBUG logs to this file",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Watch the configured folders")
    run_parser.add_argument(
        "--config",
        default=default_config,
        help="JSON configuration file (default: %(default)s)",
    )
    run_parser.add_argument(
        "--polling",
        action="store_true",
        help="Poll folders instead of using native notifications",
    )
    run_parser.add_argument(
        "--grace",
        type=float,
        default=5.0,
        help="Seconds pending archivals may still run on shutdown (default: %(default)s)",
    )
    run_parser.set_defaults(func=cmd_run)

    init_parser = subparsers.add_parser("init", help="Write a template configuration")
    init_parser.add_argument(
        "--config",
        default=default_config,
        help="JSON configuration file (default: %(default)s)",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing file",
    )
    init_parser.set_defaults(func=cmd_init)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        # No subcommand: run with the default configuration
        args.command = "run"
        args.func = cmd_run
        args.config = os.environ.get("ARCHIVER_CONFIG", DEFAULT_CONFIG_FILE)
        args.polling = False
        args.grace = 5.0

    setup_logging(args.log_level, args.log_file)
    logger.info("App Started")
    try:
        return args.func(args)
    finally:
        logger.info("App Closing")


if __name__ == "__main__":
    sys.exit(main())
