"""Command-line interface for meetrag."""

from __future__ import annotations

import argparse
import asyncio
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from meetrag.chat import EndOfStream, Fragment
from meetrag.core.config import MeetRAGConfig
from meetrag.core.doctor import check_dependencies
from meetrag.core.exceptions import MeetRAGError
from meetrag.core.logging_config import configure_logging
from meetrag.services import Services
from meetrag.worker import run_workers

MEETRAG_THEME = Theme(
    {
        "info": "bold cyan",
        "success": "bold green",
        "warning": "bold yellow",
        "error": "bold red",
        "highlight": "bold magenta",
        "dim": "grey50",
    }
)

console = Console(theme=MEETRAG_THEME)


def _load_config() -> MeetRAGConfig:
    config = MeetRAGConfig()
    configure_logging(config.log_level, config.log_format, config.log_timestamps)
    return config


def serve_cmd(host: str | None, port: int | None, workers: int | None) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from meetrag.api import create_app

    config = _load_config()
    if workers is not None:
        config.embedded_workers = workers
    app = create_app(config)
    console.print(
        f"[info]Serving meetrag on {host or config.api_host}:{port or config.api_port}[/] "
        f"[dim](embedded workers: {config.embedded_workers})[/]"
    )
    uvicorn.run(app, host=host or config.api_host, port=port or config.api_port, log_config=None)


async def worker_cmd(instances: int) -> None:
    """Run pipeline workers until interrupted."""
    config = _load_config()
    async with Services.from_config(config) as services:
        workers = [await services.open_worker(name=f"worker-{i}") for i in range(instances)]
        console.print(f"[info]Started {len(workers)} worker(s) on queue '{config.queue_name}'[/]")
        try:
            await run_workers(workers)
        finally:
            for worker in workers:
                worker.stop()


async def ask_cmd(session_id: str, question: str) -> None:
    """Ask a question about a session and print the streamed answer."""
    config = _load_config()
    async with Services.from_config(config) as services:
        try:
            events = await services.chat.ask(session_id, question)
        except MeetRAGError as e:
            console.print(f"[error]Chat failed:[/] {e}")
            sys.exit(1)
        async for event in events:
            if isinstance(event, Fragment):
                console.print(event.text, end="", markup=False, highlight=False)
            elif isinstance(event, EndOfStream):
                console.print()


def doctor_cmd() -> None:
    """Check external binaries and provider keys."""
    config = _load_config()
    result = check_dependencies(config)

    table = Table(box=None, show_header=True, header_style="highlight", pad_edge=False)
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail", style="dim")
    for check in result.checks:
        status = "[success]ok[/]" if check.available else (
            "[error]missing[/]" if check.required else "[warning]missing (optional)[/]"
        )
        table.add_row(check.name, status, check.detail or "")

    console.print(Panel("meetrag doctor", style="info", expand=False))
    console.print(table)
    if not result.all_ok:
        console.print("\n[error]Some required dependencies are missing.[/]")
        sys.exit(1)
    console.print("\n[success]All checks passed.[/]")
    sys.exit(0)


def main() -> None:
    """Entry point with clean help documentation."""
    parser = argparse.ArgumentParser(
        description="meetrag: live meeting transcription with retrieval-augmented chat",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  meetrag serve --port 8000
  meetrag worker --instances 2
  meetrag ask <session-id> "What did we decide about the launch?"
  meetrag doctor

Note: Use "meetrag [command] --help" for more details on a specific command.
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (default from config)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default from config)")
    serve_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Pipeline workers to run inside the API process",
    )

    worker_parser = subparsers.add_parser("worker", help="Run pipeline workers")
    worker_parser.add_argument(
        "--instances", type=int, default=1, help="Number of concurrent workers (default: 1)"
    )

    ask_parser = subparsers.add_parser("ask", help="Ask a question about a session")
    ask_parser.add_argument("session_id", help="Session id")
    ask_parser.add_argument("question", help="The question to ask")

    subparsers.add_parser("doctor", help="Check ffprobe and provider API keys")

    args = parser.parse_args()

    try:
        if args.command == "serve":
            serve_cmd(args.host, args.port, args.workers)
        elif args.command == "worker":
            if args.instances < 1:
                parser.error("--instances must be >= 1")
            asyncio.run(worker_cmd(args.instances))
        elif args.command == "ask":
            asyncio.run(ask_cmd(args.session_id, args.question))
        elif args.command == "doctor":
            doctor_cmd()
        else:
            parser.print_help()
    except KeyboardInterrupt:
        console.print("\n[warning]Operation cancelled by user.[/]")
        sys.exit(0)


if __name__ == "__main__":
    main()
