"""
Command-line entrypoint for Polish It.

Reads a text file, improves the requested selections (or the whole file) in
place through the streaming pipeline and writes the result to stdout, back to
the file, or to another path. Ctrl+C cancels the run; selections that were
already improved stay improved.

Positions on the command line are 1-based, like an editor's status bar:

    python main.py notes.md --select 3:1-5:12 --line 9 --in-place
"""

from __future__ import annotations

import argparse
import asyncio
import re
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ai_service import AIService
from config import config
from logging_utils import create_activity_log
from polish import (
    CancellationToken,
    CompletionClient,
    ImproveResult,
    InMemoryDocument,
    InMemoryEditor,
    Position,
    __version__,
    improve_command,
)

_SELECTION_PATTERN = re.compile(r"^\s*(\d+):(\d+)\s*-\s*(\d+):(\d+)\s*$")


def parse_selection_spec(spec: str) -> Tuple[Position, Position]:
    """
    Parse ``L:C-L:C`` (1-based) into zero-based anchor/active positions.

    Raises:
        argparse.ArgumentTypeError: When the value is malformed or not 1-based
    """
    match = _SELECTION_PATTERN.match(spec)
    if not match:
        raise argparse.ArgumentTypeError(f"Invalid selection '{spec}', expected LINE:COL-LINE:COL")

    start_line, start_col, end_line, end_col = (int(value) for value in match.groups())
    if min(start_line, start_col, end_line, end_col) < 1:
        raise argparse.ArgumentTypeError(f"Invalid selection '{spec}', positions are 1-based")

    return Position(start_line - 1, start_col - 1), Position(end_line - 1, end_col - 1)


def _positive_line(value: str) -> int:
    try:
        line = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid line number '{value}'")
    if line < 1:
        raise argparse.ArgumentTypeError(f"Invalid line number '{value}', lines are 1-based")
    return line


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Polish It - improve selected text while keeping its formatting",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("file", help="Text file to improve")
    parser.add_argument(
        "--select",
        action="append",
        default=[],
        type=parse_selection_spec,
        metavar="L:C-L:C",
        help="Selection to improve (1-based, repeatable)",
    )
    parser.add_argument(
        "--line",
        action="append",
        default=[],
        type=_positive_line,
        metavar="N",
        help="Improve a whole line (cursor without selection, repeatable)",
    )

    output = parser.add_mutually_exclusive_group()
    output.add_argument("--in-place", action="store_true", help="Write the result back to FILE")
    output.add_argument("--output", metavar="PATH", help="Write the result to PATH")

    parser.add_argument("--model", help=f"Model to use (default: {config.OPENAI_MODEL})")
    parser.add_argument("--base-url", help="OpenAI-compatible endpoint base URL")
    parser.add_argument("--verbose", action="store_true", help="Log debug details")
    parser.add_argument(
        "--extra-verbose",
        action="store_true",
        help="Log full prompts and responses (includes --verbose)",
    )
    parser.add_argument("--log-file", metavar="PATH", help="Mirror the activity log to PATH")
    return parser


def build_editor(
    text: str,
    selections: Sequence[Tuple[Position, Position]],
    lines: Sequence[int],
) -> InMemoryEditor:
    """
    Build an editor over ``text`` with the requested selections.

    Without any selection or line, the whole document is selected.
    """
    document = InMemoryDocument(text)
    editor = InMemoryEditor(document)

    for anchor, active in selections:
        editor.add_selection(anchor, active)
    for line in lines:
        if line > document.line_count:
            raise ValueError(f"Line {line} is past the end of the file ({document.line_count} lines)")
        editor.add_selection(Position(line - 1, 0))

    if not editor.selections:
        last_line = document.line_count - 1
        editor.add_selection(Position(0, 0), document.line_at(last_line).range.end)

    return editor


def _install_cancel_handler(token: CancellationToken) -> bool:
    """Route Ctrl+C to ``token``; False where the loop cannot own signals (Windows)."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        return False
    return True


def _remove_cancel_handler() -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.remove_signal_handler(signal.SIGINT)
    except (NotImplementedError, RuntimeError):
        pass


async def run_cli(
    argv: Optional[List[str]] = None,
    client: Optional[CompletionClient] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> int:
    """
    Run the command line and return the process exit code.

    ``client`` replaces the OpenAI-backed service (tests, other transports).
    """
    args = build_parser().parse_args(argv)

    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"ERROR: Cannot read {path}: {exc}", file=sys.stderr)
        return 1

    try:
        editor = build_editor(text, args.select, args.line)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    def client_factory() -> CompletionClient:
        if client is not None:
            return client
        return AIService(model=args.model, base_url=args.base_url)

    token = cancel_token or CancellationToken()
    activity_log = create_activity_log(
        name=config.LOG_CHANNEL_NAME,
        verbose=args.verbose or config.VERBOSE,
        extra_verbose=args.extra_verbose or config.EXTRA_VERBOSE,
        log_file=args.log_file or config.LOG_FILE,
    )

    handler_installed = _install_cancel_handler(token)
    try:
        with activity_log:
            result = await improve_command(
                editor,
                client_factory,
                activity_log=activity_log,
                cancel_token=token,
            )
    finally:
        if handler_installed:
            _remove_cancel_handler()

    return _report(result, editor, path, args)


def _report(result: ImproveResult, editor: InMemoryEditor, path: Path, args: argparse.Namespace) -> int:
    if result.warning:
        print(f"WARNING: {result.warning}", file=sys.stderr)
        return 1

    improved = editor.document.text
    if args.in_place:
        path.write_text(improved, encoding="utf-8")
    elif args.output:
        Path(args.output).write_text(improved, encoding="utf-8")
    else:
        sys.stdout.write(improved)

    if result.error:
        print(f"ERROR: {result.error}", file=sys.stderr)
        return 1

    print(
        f"Improved {result.applied_count} of {len(result.outcomes)} selection(s) ({result.state.value})",
        file=sys.stderr,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    try:
        return asyncio.run(run_cli(argv))
    except KeyboardInterrupt:
        # Platforms without loop signal handlers land here
        print("\nCancelled (Ctrl+C)", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
