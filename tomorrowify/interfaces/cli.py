import argparse
import logging
import sys
import time
from dataclasses import replace
from typing import List, Optional

from dotenv import load_dotenv

from tomorrowify.crosscutting.config import ConfigError, load_settings
from tomorrowify.crosscutting.logging import setup_logging
from tomorrowify.interfaces.handler import build_orchestrator, build_token_repository


class CLI:
    """Command Line Interface for Tomorrowify."""

    def __init__(self):
        """Initialize CLI."""
        self.parser = self._create_parser()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='tomorrowify',
            description='Move tracks from every user\'s Tomorrow playlist into Today'
        )
        parser.add_argument(
            '--env-file',
            help='Load configuration from this .env file (environment variables win)'
        )
        parser.add_argument(
            '--tokens-file',
            help='Read refresh tokens from a JSON file instead of DynamoDB'
        )
        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
            help='Logging level (default: LOG_LEVEL or INFO)'
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        run_parser = subparsers.add_parser('run', help='Rotate playlists for all stored users')
        run_parser.add_argument(
            '--max-workers',
            type=int,
            help='Number of users processed in parallel (0 = one per user)'
        )

        subparsers.add_parser('users', help='List stored user keys')

        return parser

    def _cleanup_resources(self) -> None:
        """Log total execution time."""
        logger = logging.getLogger('tomorrowify.cli')
        if self._start_time:
            duration = time.time() - self._start_time
            logger.info(f"CLI execution time: {duration:.2f}s")

    def _load_settings(self, args: argparse.Namespace):
        if args.env_file:
            load_dotenv(args.env_file)
        settings = load_settings()
        overrides = {}
        if args.tokens_file:
            overrides['tokens_file'] = args.tokens_file
        if args.log_level:
            overrides['log_level'] = args.log_level
        if getattr(args, 'max_workers', None) is not None:
            if args.max_workers < 0:
                raise ConfigError("--max-workers must not be negative")
            overrides['max_workers'] = args.max_workers
        return replace(settings, **overrides) if overrides else settings

    def _run(self, settings) -> None:
        signal = build_orchestrator(settings).run_all()
        print(f"Processed {signal.completed}/{signal.dispatched} users")

    def _list_users(self, settings) -> None:
        keys = [credential.key for credential in build_token_repository(settings).get_all_tokens()]
        print(f"Stored users ({len(keys)}):")
        print("-" * 50)
        for key in keys:
            print(key)

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Run the CLI."""
        self._start_time = time.time()
        args = self.parser.parse_args(argv)

        if not args.command:
            self.parser.print_help()
            sys.exit(1)

        try:
            settings = self._load_settings(args)
        except ConfigError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            sys.exit(1)

        setup_logging(settings.log_level)
        logger = logging.getLogger('tomorrowify.cli')

        try:
            if args.command == 'run':
                self._run(settings)
            elif args.command == 'users':
                self._list_users(settings)
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            sys.exit(130)
        except Exception as e:
            logger.error(f"CLI error: {e}")
            sys.exit(1)
        finally:
            self._cleanup_resources()


def main():
    """Main entry point."""
    cli = CLI()
    cli.run()


if __name__ == '__main__':
    main()
