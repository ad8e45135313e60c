"""Command line interface for jobclient package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

import httpx
from rich.logging import RichHandler

from . import __version__
from .cli_progress import JobProgressDisplay, human_size, render_configuration_summary
from .errors import JobClientError
from .models import ClientConfig, JobState
from .orchestrator import JobOrchestrator
from .services.api_client import HTTPAPIClient
from .services.reports import ReportClient, default_filename


API_URL_ENV = "JOBCLIENT_API_URL"


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _requested_level(debug: bool, silent: bool, log_level: Optional[str]) -> Optional[int]:
    if silent or not (debug or log_level):
        return None
    if debug:
        return logging.DEBUG
    return getattr(logging, log_level.upper(), logging.INFO)


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """Route jobclient logs through rich; silent unless --debug or --log-level is given."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    level = _requested_level(debug, silent, log_level)
    if level is None:
        logging.disable(logging.CRITICAL)
        return "silent"

    logging.disable(logging.NOTSET)
    handler = RichHandler(rich_tracebacks=True, markup=False, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _load_env_file(path: Path) -> None:
    """Apply ``KEY=value`` lines from ``path``; variables already set win."""
    if not path.is_file():
        raise CLIError(f"env file not found: {path}")
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for line in lines:
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key.isidentifier():
            continue
        value = value.strip()
        if value[:1] in ("'", '"') and value[-1:] == value[:1] and len(value) > 1:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _resolve_api_url(explicit: Optional[str]) -> str:
    api_url = explicit or os.getenv(API_URL_ENV)
    if not api_url:
        raise CLIError(f"API URL missing: pass --api-url or set {API_URL_ENV}")
    return api_url.rstrip("/")


async def _run_submit(
    source: Path,
    config: ClientConfig,
    content_type: Optional[str],
    output: Optional[Path],
    show_progress: bool,
) -> int:
    display = JobProgressDisplay(source, live=show_progress)
    async with JobOrchestrator(config) as orchestrator:
        orchestrator.on("job", display.on_job)
        display.start()
        try:
            await orchestrator.submit(source, content_type=content_type)
            job = await orchestrator.wait()
        finally:
            display.stop()
        if job is None:
            return 1
        display.finish(job)

        if job.state is not JobState.COMPLETED:
            return 1

        if output is not None:
            try:
                path = await orchestrator.download_output(output)
            except JobClientError as exc:
                raise CLIError(f"download failed: {exc}") from exc
            print(f"Saved output to {path}")
        else:
            url = await orchestrator.request_download()
            print(url)
        return 0


async def _run_issues(
    api_url: str,
    owner: str,
    repo: str,
    labels: str,
    wanted_n: int,
    output: Optional[Path],
    timeout: float,
) -> int:
    target = output or Path(default_filename(owner, repo))
    async with HTTPAPIClient(api_url, timeout=timeout) as api:
        content = await ReportClient(api).download_issues_csv(owner, repo, labels, wanted_n)
    target.write_bytes(content)
    print(f"Saved {human_size(len(content))} to {target}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobclient",
        description="Upload a file for server-side processing and fetch the result.",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help=f"Backend base URL (default from {API_URL_ENV})",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--timeout", type=float, default=60, help="HTTP request timeout in seconds")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"jobclient {__version__}",
    )

    commands = parser.add_subparsers(dest="command")

    submit = commands.add_parser("submit", help="Upload a file and wait for processing")
    submit.add_argument("source", type=Path, help="File to upload")
    submit.add_argument("--content-type", default=None, help="Override the upload Content-Type")
    submit.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Download the processed output here (default: print the download URL)",
    )
    submit.add_argument("--interval", type=float, default=1.5, help="Status poll interval in seconds")
    submit.add_argument("--max-attempts", type=int, default=None, help="Give up after this many polls")
    submit.add_argument("--max-duration", type=float, default=None, help="Give up after this many seconds")
    submit.add_argument("--no-progress", action="store_true", help="Disable the live progress bar")

    issues = commands.add_parser("issues", help="Download the issues CSV export")
    issues.add_argument("--owner", required=True)
    issues.add_argument("--repo", required=True)
    issues.add_argument("--labels", default="", help="Comma separated labels")
    issues.add_argument("--wanted-n", type=int, default=50)
    issues.add_argument("-o", "--output", type=Path, default=None)
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        api_url = _resolve_api_url(args.api_url)

        if args.command == "issues":
            return asyncio.run(
                _run_issues(
                    api_url,
                    owner=args.owner,
                    repo=args.repo,
                    labels=args.labels,
                    wanted_n=args.wanted_n,
                    output=args.output,
                    timeout=args.timeout,
                )
            )

        source = Path(args.source).expanduser()
        if not source.is_file():
            raise CLIError(f"source is not a file: {source}")

        try:
            config = ClientConfig(
                base_url=api_url,
                poll_interval=args.interval,
                max_poll_attempts=args.max_attempts,
                max_poll_duration=args.max_duration,
                request_timeout=args.timeout,
            )
        except ValueError as exc:
            raise CLIError(str(exc)) from exc

        render_configuration_summary(
            {
                "Source": str(source),
                "Size": human_size(source.stat().st_size),
                "API": api_url,
                "Poll Interval": f"{config.poll_interval}s",
                "Max Attempts": config.max_poll_attempts or "unbounded",
                "Max Duration": f"{config.max_poll_duration}s" if config.max_poll_duration else "unbounded",
                "Output": str(args.output) if args.output else "(print URL)",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )
        return asyncio.run(
            _run_submit(
                source,
                config,
                content_type=args.content_type,
                output=args.output,
                show_progress=not args.no_progress,
            )
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except (JobClientError, httpx.HTTPError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
