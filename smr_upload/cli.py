"""
Command-line interface for publishing mod versions.
"""
import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_CHUNK_SIZE, build_config
from .errors import UploadCancelledError, UploadError
from .models import Stability, UploadTarget
from .orchestrator import UploadOrchestrator

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None,
                  quiet: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
        log_file: Optional file to append logs to
        quiet: Whether to suppress console output
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers: List[logging.Handler] = []
    if not quiet:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='a'))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


def create_orchestrator(args: argparse.Namespace,
                        cancel_event: Optional[threading.Event] = None) -> UploadOrchestrator:
    """Create and configure the upload orchestrator.

    Args:
        args: Command line arguments
        cancel_event: Event that aborts the upload when set

    Returns:
        Configured UploadOrchestrator instance
    """
    config = build_config(
        args.config,
        api_base=args.api_base,
        graphql_path=args.graphql_api,
        api_key=args.api_key,
        chunk_size=args.chunk_size,
        stability=args.stability,
        max_workers=args.workers,
        dry_run=args.dry_run or None
    )
    return UploadOrchestrator(config, cancel_event=cancel_event)


def install_interrupt_handler(cancel_event: threading.Event):
    """Make the first SIGINT cancel the upload and a second one abort the process.

    Args:
        cancel_event: Event set on the first interrupt

    Returns:
        The previous SIGINT handler, or None outside the main thread
    """
    if threading.current_thread() is not threading.main_thread():
        return None

    def on_interrupt(signum, frame):
        logger.warning("Cancelling upload, press Ctrl-C again to abort immediately")
        cancel_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    return signal.signal(signal.SIGINT, on_interrupt)


def handle_upload(args: argparse.Namespace) -> int:
    """Handle the upload command.

    Args:
        args: Command line arguments

    Returns:
        Process exit code
    """
    cancel_event = threading.Event()
    previous_handler = install_interrupt_handler(cancel_event)

    try:
        # Chunk size and stability are checked before the file is touched
        with create_orchestrator(args, cancel_event) as orchestrator:
            target = UploadTarget.from_path(
                args.mod_id,
                args.file,
                " ".join(args.changelog),
                orchestrator.config.stability
            )
            if not orchestrator.config.api_key and not orchestrator.config.dry_run:
                logger.warning("No API key configured, the upload will likely be rejected")

            try:
                report = orchestrator.publish(target)
            except (UploadCancelledError, KeyboardInterrupt) as e:
                logger.warning(f"Upload interrupted by user: {str(e) or 'aborted'}")
                return 130
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    if report.version_id:
        print(f"Version {report.version_id} of mod {report.mod_id}: {report.outcome.value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="smr-upload",
                                     description="Mod repository publishing CLI")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    parser.add_argument('-c', '--config', type=Path,
                        help="Path to config file")
    parser.add_argument('--log-file', type=Path,
                        help="File to output logs to")
    parser.add_argument('--quiet', action='store_true',
                        help="Do not log anything to console")
    parser.add_argument('--dry-run', action='store_true',
                        help="Plan the upload without contacting the API")
    parser.add_argument('--api-base', type=str,
                        help="URL for API")
    parser.add_argument('--graphql-api', type=str,
                        help="Path for GraphQL API")
    parser.add_argument('--api-key', type=str,
                        help="API key to use when sending requests")

    subparsers = parser.add_subparsers(dest='command', required=True)

    upload_parser = subparsers.add_parser('upload',
                                          help="Upload a new mod version")
    upload_parser.add_argument('mod_id', type=str,
                               help="Mod ID")
    upload_parser.add_argument('file', type=Path,
                               help="Path to the mod file")
    upload_parser.add_argument('changelog', nargs='+',
                               help="Changelog of the new version")
    upload_parser.add_argument('--chunk-size', type=int,
                               help=f"Size of chunks to split uploaded mod in bytes "
                                    f"(default {DEFAULT_CHUNK_SIZE})")
    upload_parser.add_argument('--stability', type=str,
                               help="Stability of the uploaded mod "
                                    f"({', '.join(s.value for s in Stability)}; default release)")
    upload_parser.add_argument('--workers', type=int,
                               help="Number of chunks to upload concurrently (default 1)")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file, args.quiet)

    try:
        if args.command == 'upload':
            sys.exit(handle_upload(args))

    except UploadError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
