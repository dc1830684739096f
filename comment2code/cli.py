"""CLI entrypoints for comment2code commands."""

from __future__ import annotations

import argparse
import asyncio
import difflib
import logging
import sys
from pathlib import Path

from .config import CONFIG_FILENAME, Comment2CodeConfig, ConfigError, load_config
from .editor import MemoryEditor
from .logging import configure_logging
from .orchestrator import Orchestrator
from .parsing.grammar import CommentGrammar


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", help="Source file containing @ai: comments.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="comment2code",
        description="Turn @ai: trigger comments into code with the opencode CLI.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to a {CONFIG_FILENAME} file (defaults to the one next to the source file).",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model passed to the generation CLI (overrides configuration).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Generate code for every trigger comment in a file, top to bottom.",
    )
    _add_verbose_option(run_parser, suppress_default=True)
    _add_path_argument(run_parser)
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resulting diff instead of writing the file.",
    )

    trigger_parser = subparsers.add_parser(
        "trigger",
        help="Generate (or refactor) for the trigger comment on one line.",
    )
    _add_verbose_option(trigger_parser, suppress_default=True)
    _add_path_argument(trigger_parser)
    trigger_parser.add_argument(
        "--line",
        type=int,
        required=True,
        help="1-based line number of the trigger comment.",
    )
    trigger_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resulting diff instead of writing the file.",
    )

    scan_parser = subparsers.add_parser(
        "scan",
        help="List the trigger comments found in a file.",
    )
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_path_argument(scan_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP host used by editor integrations.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8765, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for comment2code commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        config = _load_cli_config(args)
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")

    if args.command == "scan":
        path = _require_file(parser, args.path)
        grammar = CommentGrammar(config.trigger)
        lines = path.read_text(encoding="utf-8").splitlines()
        comments = grammar.find_all(lines)
        if not comments:
            print(f"No {config.trigger} comments found")
            return
        for comment in comments:
            print(f"{comment.line_number + 1}: {comment.prompt}")
    elif args.command in {"run", "trigger"}:
        path = _require_file(parser, args.path)
        line = args.line - 1 if args.command == "trigger" else None
        try:
            before, after, failures = asyncio.run(_generate(path, config, line=line))
        except RuntimeError as exc:
            parser.exit(1, f"comment2code {args.command} failed: {exc}\nRun with --verbose for more details.\n")
        if before == after:
            print("No changes")
        elif bool(getattr(args, "dry_run", False)):
            print(_unified_diff(path, before, after), end="")
        else:
            path.write_text(after, encoding="utf-8")
            print(f"Updated {_relativize(path)}")
        if failures:
            details = "; ".join(failures)
            parser.exit(1, f"comment2code {args.command} failed: {details}\nRun with --verbose for more details.\n")
    elif args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port, config=config)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


async def _generate(
    path: Path, config: Comment2CodeConfig, *, line: int | None = None
) -> tuple[str, str, list[str]]:
    """Run the queue over one file; return its text before and after plus error notices."""
    editor = MemoryEditor()
    buffer = editor.open_file(path)
    before = buffer.text()
    orchestrator = Orchestrator(editor, config)
    if line is None:
        orchestrator.process_all(buffer.buffer_id)
    elif not orchestrator.trigger_line(buffer.buffer_id, line):
        raise RuntimeError(f"No {config.trigger} comment on line {line + 1}")
    await orchestrator.wait_idle()
    failures = [message for level, message in orchestrator.notify.history() if level >= logging.ERROR]
    return before, buffer.text(), failures


def _load_cli_config(args: argparse.Namespace) -> Comment2CodeConfig:
    if args.config:
        config_path = Path(args.config)
    elif getattr(args, "path", None):
        config_path = Path(args.path).resolve().parent
    else:
        config_path = Path.cwd()
    config = load_config(config_path)
    if args.model:
        config.model = args.model
    return config


def _require_file(parser: argparse.ArgumentParser, raw_path: str) -> Path:
    path = Path(raw_path)
    if not path.is_file():
        parser.exit(1, f"File not found: {raw_path}\n")
    return path


def _unified_diff(path: Path, before: str, after: str) -> str:
    name = _relativize(path)
    diff = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{name}",
        tofile=f"b/{name}",
    )
    return "".join(diff)


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
