"""Main entry point for the Switch library audit application.

This module provides the application entry point with:
- Command-line argument parsing
- Application initialization and dependency injection
- Exit codes for every way a run can end
"""

import argparse
import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

import structlog

from . import __version__
from .models import RecurseOverride, RunOverrides
from .services.config import DEFAULT_BASE_DIR, ConfigurationService
from .services.errors import ErrorHandlingService, ExitCode, PipelineAbort
from .services.http_client import HttpClientService
from .services.logging import setup_logging
from .services.pipeline import AuditPipeline
from .services.resource_fetcher import CachedResourceFetcher
from .ui.console import ConsoleReporter


log = structlog.stdlib.get_logger()

DEPRECATED_MODE_NOTICE = "note : the mode option ('-m') is deprecated, please use the settings.json to control options."


class ApplicationContext:
    """Container for application services.

    Services are created lazily so that tests can replace any of them before
    the pipeline is built.
    """

    def __init__(
        self,
        base_dir: Path,
        reporter: ConsoleReporter | None = None,
    ) -> None:
        self._base_dir: Path = base_dir
        self._config_service: ConfigurationService | None = None
        self._error_service: ErrorHandlingService | None = None
        self._reporter: ConsoleReporter | None = reporter

    @property
    def config_service(self) -> ConfigurationService:
        """Get the configuration service (lazy initialization)."""
        if self._config_service is None:
            self._config_service = ConfigurationService(base_dir=self._base_dir)
        return self._config_service

    @property
    def error_service(self) -> ErrorHandlingService:
        if self._error_service is None:
            self._error_service = ErrorHandlingService()
        return self._error_service

    @property
    def reporter(self) -> ConsoleReporter:
        if self._reporter is None:
            self._reporter = ConsoleReporter()
        return self._reporter

    def create_pipeline(self, http_client: HttpClientService) -> AuditPipeline:
        """Build the audit pipeline around an open HTTP client."""
        return AuditPipeline(
            config_service=self.config_service,
            fetcher=CachedResourceFetcher(http_client),
            reporter=self.reporter,
            error_service=self.error_service,
        )


class ParsedArgs:
    """Type-safe container for parsed command-line arguments."""

    def __init__(
        self,
        folder: Path | None,
        recursive: RecurseOverride,
        mode: str,
        config_dir: Path,
        log_level: str,
        log_dir: Path | None,
        verbose: bool,
    ) -> None:
        self.folder: Path | None = folder
        self.recursive: RecurseOverride = recursive
        self.mode: str = mode
        self.config_dir: Path = config_dir
        self.log_level: str = log_level
        self.log_dir: Path | None = log_dir
        self.verbose: bool = verbose

    @property
    def overrides(self) -> RunOverrides:
        return RunOverrides(folder=self.folder, recursive=self.recursive)


def parse_recurse_override(value: str) -> RecurseOverride:
    """Parse a boolean command-line value into a recurse override."""
    normalized = value.strip().lower()
    if normalized in ("1", "t", "true", "yes", "y"):
        return RecurseOverride.TRUE
    if normalized in ("0", "f", "false", "no", "n"):
        return RecurseOverride.FALSE
    raise argparse.ArgumentTypeError(f"expected a boolean value, got {value!r}")


def parse_arguments(argv: Sequence[str] | None = None) -> ParsedArgs:
    """Parse command-line arguments.

    Args:
        argv: Arguments to parse (defaults to ``sys.argv[1:]``)

    Returns:
        Parsed arguments container
    """
    parser = argparse.ArgumentParser(
        prog="switch-library-audit",
        description="Audit a local Switch library against the public title database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  switch-library-audit -f /games/switch          Scan a folder for this run only
  switch-library-audit -f /games/switch -r false  Scan without sub folders
  switch-library-audit --verbose --log-level DEBUG
        """
    )

    _ = parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    _ = parser.add_argument(
        "-f",
        dest="folder",
        type=Path,
        default=None,
        help="path to NSP folder (overrides settings.json for this run)"
    )

    _ = parser.add_argument(
        "-r",
        dest="recursive",
        type=parse_recurse_override,
        nargs="?",
        const=RecurseOverride.TRUE,
        default=RecurseOverride.UNSET,
        help="recursively scan sub folders; only 'false' overrides settings.json"
    )

    _ = parser.add_argument(
        "-m",
        dest="mode",
        default="",
        help="**deprecated**"
    )

    _ = parser.add_argument(
        "--config-dir",
        type=Path,
        default=DEFAULT_BASE_DIR,
        help=f"Directory holding settings.json, prod.keys and cached title files (default: {DEFAULT_BASE_DIR})"
    )

    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)"
    )

    _ = parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: <config-dir>/logs)"
    )

    _ = parser.add_argument(
        "--verbose",
        action="store_true",
        help="Also write log messages to the console"
    )

    ns = parser.parse_args(argv)

    return ParsedArgs(
        folder=ns.folder,
        recursive=ns.recursive,
        mode=ns.mode or "",
        config_dir=ns.config_dir,
        log_level=ns.log_level,
        log_dir=ns.log_dir,
        verbose=bool(ns.verbose),
    )


async def run_audit(context: ApplicationContext, overrides: RunOverrides) -> int:
    """Run one audit and translate its outcome into an exit code.

    Args:
        context: Application context with the services to use
        overrides: Per-run command-line overrides

    Returns:
        Exit code (0 for success, non-zero for each abort kind)
    """
    async with HttpClientService() as http_client:
        pipeline = context.create_pipeline(http_client)
        try:
            await pipeline.run(overrides)
        except PipelineAbort as e:
            error = context.error_service.handle_error(e, operation=e.stage, component="main")
            context.reporter.error(context.error_service.create_user_message(error))
            return int(e.exit_code)
    return int(ExitCode.OK)


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    log_dir = args.log_dir or args.config_dir / "logs"
    _ = setup_logging(
        log_level=args.log_level,
        log_dir=log_dir,
        quiet=not args.verbose,
    )

    log.info(
        "Starting Switch library audit",
        version=__version__,
        config_dir=str(args.config_dir),
        folder_override=str(args.folder) if args.folder else None,
        recursive_override=args.recursive.value,
    )

    context = ApplicationContext(base_dir=args.config_dir)

    if args.mode:
        context.reporter.info(DEPRECATED_MODE_NOTICE)

    try:
        exit_code = asyncio.run(run_audit(context, args.overrides))

    except KeyboardInterrupt:
        log.info("Application interrupted by user")
        exit_code = int(ExitCode.INTERRUPTED)

    except Exception as e:
        log.error("Unhandled exception", error=str(e), exc_info=True)
        print(f"Fatal error: {e}", file=sys.stderr)
        exit_code = int(ExitCode.UNEXPECTED)

    log.info("Application exiting", exit_code=exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
