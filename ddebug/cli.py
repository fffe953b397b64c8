"""ddebug - command line entry point"""

import sys
import argparse
import shlex
import signal
import atexit
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .config import ReductionConfig
from .discovery import Target, discover
from .errors import DDebugError
from .oracle import BuildOracle
from .reduction import ReductionResult, ReductionSession
from .report import ask_yes_no, render_diff, render_summary, write_back
from .syntax import NodeRegistry, RustParser
from .util import LogLevel, configure_logging, get_logger
from .workspace import WorkspaceManager

logger = get_logger("ddebug.cli")


class Reducer:
    """One command line run: discovery, session, output and cleanup"""

    def __init__(self, args: argparse.Namespace, config: ReductionConfig):
        """Initialize reducer.

        Args:
            args: Parsed command line
            config: Effective configuration
        """
        self.args = args
        self.config = config
        self.session: Optional[ReductionSession] = None
        self.workspaces: Optional[WorkspaceManager] = None
        self._signals = 0
        self._previous_handlers: Dict[int, Any] = {}

        atexit.register(self.cleanup)

    def _signal_handler(self, signum, frame):
        """First signal cancels gracefully, a second one kills running builds"""
        self._signals += 1
        print(f"Received signal {signum}, stopping reduction...", file=sys.stderr)
        if self.session is None:
            raise KeyboardInterrupt
        if self._signals == 1:
            self.session.cancel("interrupted")
        else:
            self.session.oracle.kill_event.set()

    def _install_signals(self):
        for signum in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[signum] = signal.signal(signum, self._signal_handler)

    def _restore_signals(self):
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def cleanup(self):
        """Remove all workspaces of this run"""
        if self.workspaces is not None:
            self.workspaces.cleanup()
            self.workspaces = None

    def run(self) -> int:
        """Run the whole reduction.

        Returns:
            Process exit code
        """
        args = self.args
        target = discover(
            Path(args.path),
            self.config,
            target_error=args.target_error,
            file=Path(args.file) if args.file else None
        )

        self.workspaces = WorkspaceManager(target.project_root, target.target_file, self.config)
        parser = RustParser()
        registry = NodeRegistry.from_source(
            self.workspaces.read_original(),
            parser=parser,
            size_metric=self.config.size_metric,
            path=target.target_file.as_posix()
        )
        oracle = BuildOracle(target.command, target.target_file, timeout_sec=self.config.timeout)

        self.session = ReductionSession(
            registry,
            target.signature,
            self.workspaces,
            oracle,
            config=self.config,
            parser=parser
        )
        self.session.seed_baseline()

        self._install_signals()
        try:
            result = self.session.run()
        finally:
            self._restore_signals()

        self._emit(result, target)
        return result.exit_code

    def _emit(self, result: ReductionResult, target: Target):
        args = self.args

        if not args.quiet:
            print(render_summary(result, target.target_file, str(target.signature)), file=sys.stderr)

        if args.diff:
            sys.stdout.write(render_diff(result, target.target_file))
        elif not (args.write or args.output):
            sys.stdout.write(result.text)
        sys.stdout.flush()

        if args.write or args.output:
            destination = Path(args.output) if args.output else target.target_path
            outcome = write_back(
                result,
                destination,
                original_path=target.target_path,
                expected_hash=self.workspaces.original_hash,
                confirm=None if (args.yes or args.output) else ask_yes_no,
                dry_run=args.dry_run
            )
            if outcome.written:
                print(f"Wrote {outcome.path}", file=sys.stderr)
            else:
                print(f"Not written: {outcome.error}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    """Command line definition"""
    parser = argparse.ArgumentParser(
        prog="ddebug",
        description="Minimize a Rust source file while preserving a compiler error"
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Cargo project directory or .rs file (default: current directory)"
    )
    parser.add_argument(
        "--target-error",
        help="Error to preserve, e.g. E0384 or 'E0384: cannot assign twice' (default: first error)"
    )
    parser.add_argument(
        "--file",
        help="File to reduce, relative to the project (default: location of the error)"
    )
    parser.add_argument("--timeout", type=float, help="Per-trial build timeout in seconds (default: 60)")
    parser.add_argument("--concurrency", "-j", type=int, help="Parallel trial builds (default: 1)")
    parser.add_argument("--max-passes", type=int, help="Maximum number of passes (default: 100)")
    parser.add_argument("--time-budget", type=float, help="Stop after this many seconds with a partial result")
    parser.add_argument(
        "--size-metric",
        choices=["bytes", "descendants"],
        help="Node size used to order candidates (default: bytes)"
    )
    parser.add_argument(
        "--command",
        help="Build command; {file} expands to the target file (default: cargo check or rustc)"
    )
    parser.add_argument("--grace", type=float, help="Seconds running builds get after cancellation (default: 5)")
    parser.add_argument("--config", help="JSON config file")
    parser.add_argument(
        "--workspace-backend",
        choices=["auto", "copy", "overlay"],
        help="Trial workspace implementation (default: auto)"
    )
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip the final rebuild of the minimized file"
    )
    parser.add_argument("--output", "-o", help="Write the minimized file here")
    parser.add_argument("--write", action="store_true", help="Overwrite the target file with the result")
    parser.add_argument("--yes", "-y", action="store_true", help="Do not ask before overwriting")
    parser.add_argument("--dry-run", action="store_true", help="Check write-back without writing")
    parser.add_argument("--diff", action="store_true", help="Print a unified diff instead of the file")
    parser.add_argument("--log-json", action="store_true", help="Log JSON lines to stderr")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(args: argparse.Namespace) -> ReductionConfig:
    """Defaults, then the config file, then command line flags."""
    config = ReductionConfig.from_file(Path(args.config)) if args.config else ReductionConfig()
    return config.merged(
        timeout=args.timeout,
        concurrency=args.concurrency,
        max_passes=args.max_passes,
        time_budget=args.time_budget,
        size_metric=args.size_metric,
        command=shlex.split(args.command) if args.command else None,
        grace=args.grace,
        workspace_backend=args.workspace_backend,
        verify=False if args.no_verify else None,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    if args.verbose:
        level = LogLevel.DEBUG
    elif args.quiet:
        level = LogLevel.WARNING
    else:
        level = LogLevel.INFO
    configure_logging(json_output=args.log_json, level=level)

    reducer = None
    try:
        config = load_config(args)
        reducer = Reducer(args, config)
        return reducer.run()
    except DDebugError as e:
        logger.error(e.message, detail=e.detail)
        print(f"error: {e.describe()}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 3
    finally:
        if reducer is not None:
            reducer.cleanup()
            atexit.unregister(reducer.cleanup)


if __name__ == "__main__":
    sys.exit(main())
