"""CLI entry point - serve the API, list agents, run a single prompt."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .config import DEFAULT_CONFIG_PATH, OrchestratorConfig, load_config
from .errors import AgentError, InvalidConfigError
from .observability import setup_logging
from .service import OrchestratorService

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-orchestrator",
        description="Agent Orchestrator - run, resume and delegate between named agents",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API server")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")

    subparsers.add_parser("agents", help="List available agents")

    run = subparsers.add_parser("run", help="Run one agent on a task and print the result")
    run.add_argument("agent", help="Agent name")
    run.add_argument("task", help="Task prompt")
    run.add_argument("--resume", help="Session id to continue")
    run.add_argument("--fork", action="store_true", help="Fork the resumed session")
    run.add_argument("--json", action="store_true", help="Print the raw JSON result")

    return parser


def print_agents(service: OrchestratorService) -> None:
    agents = service.catalog.list()
    if not agents:
        dirs = ", ".join(str(d) for d in service.catalog.dirs) or "none"
        console.print(f"No agents found. Add .md files to: {dirs}", style="yellow")
        return

    table = Table(title="Agents")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Model", style="dim")
    for agent in agents:
        table.add_row(agent.name, agent.description, agent.model or "-")
    console.print(table)


async def run_once(service: OrchestratorService, args: argparse.Namespace) -> int:
    try:
        result = await service.run(args.agent, args.task, resume=args.resume, fork=args.fork)
    finally:
        await service.shutdown()

    if args.json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        style = "green" if result.success else "red"
        console.print(Panel(Markdown(result.summary), title=f"{args.agent} · {result.session_id}", border_style=style))
        for path in result.artifacts or []:
            console.print(f"  📝 {path}", style="dim")
    return 0 if result.success else 1


def serve(config: OrchestratorConfig, host: str, port: int) -> None:
    import uvicorn

    from .web.app import create_app

    uvicorn.run(create_app(config), host=host, port=port)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except InvalidConfigError as e:
        console.print(f"❌ {e.message}", style="red")
        return 2

    setup_logging(verbose=args.verbose or config.logging.verbose)

    if args.command == "serve":
        serve(config, args.host, args.port)
        return 0

    service = OrchestratorService(config)

    if args.command == "agents":
        print_agents(service)
        return 0

    try:
        return asyncio.run(run_once(service, args))
    except AgentError as e:
        console.print(f"❌ {e.code.value}: {e.message}", style="red")
        return 1
    except KeyboardInterrupt:
        console.print("\n⚠️ Interrupted.", style="yellow")
        return 130


if __name__ == "__main__":
    sys.exit(main())
