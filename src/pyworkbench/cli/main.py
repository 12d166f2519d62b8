"""
Command-line interface for pyworkbench.

Commands:
- schemas: print every tool schema as JSON
- call: run one tool against a workspace snapshot file
- run: execute a Python file (or stdin) in the sandboxed worker
- serve: start the HTTP API
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pyworkbench.config import WorkbenchConfig
from pyworkbench.errors import WorkbenchError
from pyworkbench.session import WorkbenchSession
from pyworkbench.tools import ToolCategory, ToolRegistry
from pyworkbench.toolsets import register_default_tools
from pyworkbench.tree import Tree, tree_from_dicts, tree_to_dicts
from pyworkbench.types import ToolResult

logger = logging.getLogger(__name__)


def load_workspace(path: Path | None) -> Tree:
    """Load a workspace snapshot: a JSON list of nodes or {"tree": [...]}."""
    if path is None or not path.exists():
        return ()
    data = json.loads(path.read_text(encoding="utf-8") or "[]")
    if isinstance(data, dict):
        data = data.get("tree", [])
    if not isinstance(data, list):
        raise WorkbenchError(f"Workspace file must hold a list of nodes: {path}")
    return tree_from_dicts(data)


def save_workspace(path: Path, tree: Tree) -> None:
    path.write_text(json.dumps(tree_to_dicts(tree), indent=2), encoding="utf-8")


def cmd_schemas(args: argparse.Namespace) -> int:
    registry = register_default_tools(ToolRegistry())
    if args.category:
        tools = registry.get_tools_by_category(ToolCategory(args.category))
        schemas = [t.to_openai_schema() if args.openai else t.to_schema() for t in tools]
    elif args.openai:
        schemas = registry.get_openai_schemas()
    else:
        schemas = registry.get_all_tool_schemas()
    print(json.dumps(schemas, indent=2))
    return 0


async def _call_tool(session: WorkbenchSession, name: str, arguments: dict[str, Any]) -> ToolResult:
    async with session:
        return await session.execute(name, arguments)


def cmd_call(args: argparse.Namespace, config: WorkbenchConfig) -> int:
    try:
        arguments = json.loads(args.args)
    except json.JSONDecodeError as e:
        print(f"Invalid --args JSON: {e}", file=sys.stderr)
        return 2
    if not isinstance(arguments, dict):
        print("--args must be a JSON object", file=sys.stderr)
        return 2

    workspace = Path(args.workspace) if args.workspace else None
    try:
        tree = load_workspace(workspace)
    except (WorkbenchError, json.JSONDecodeError) as e:
        print(f"Could not load workspace: {e}", file=sys.stderr)
        return 2

    session = WorkbenchSession(tree=tree, config=config)
    result = asyncio.run(_call_tool(session, args.tool, arguments))
    print(result.to_message_content())

    if args.save and workspace is not None and result.success:
        save_workspace(workspace, session.tree)
        logger.info(f"Saved workspace to {workspace}")
    return 0 if result.success else 1


def cmd_run(args: argparse.Namespace, config: WorkbenchConfig) -> int:
    if args.file == "-":
        code = sys.stdin.read()
    else:
        code = Path(args.file).read_text(encoding="utf-8")

    arguments: dict[str, Any] = {"code": code}
    if args.timeout is not None:
        arguments["timeout"] = args.timeout

    session = WorkbenchSession(config=config)
    result = asyncio.run(_call_tool(session, "execute_python", arguments))
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    sys.stdout.write(result.data["stdout"])
    sys.stderr.write(result.data["stderr"])
    return 1 if result.data["stderr"] else 0


def cmd_serve(args: argparse.Namespace) -> int:
    from pyworkbench.api.server import run_server
    run_server(host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyworkbench",
        description="Workspace tools and sandboxed Python execution for AI agents",
    )
    parser.add_argument("--log-level", default=None,
                        help="Logging level (default: WORKBENCH_LOG_LEVEL or WARNING)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    schemas_parser = subparsers.add_parser("schemas", help="Print tool schemas as JSON")
    schemas_parser.add_argument("--openai", action="store_true",
                                help="Wrap each schema in OpenAI function format")
    schemas_parser.add_argument("--category", choices=[c.value for c in ToolCategory],
                                help="Only tools in this category")

    call_parser = subparsers.add_parser("call", help="Run one tool against a workspace")
    call_parser.add_argument("tool", help="Tool name")
    call_parser.add_argument("--args", default="{}", help="Tool arguments as a JSON object")
    call_parser.add_argument("--workspace", help="Workspace snapshot JSON file")
    call_parser.add_argument("--save", action="store_true",
                             help="Write the changed workspace back to --workspace")

    run_parser = subparsers.add_parser("run", help="Execute Python in the sandboxed worker")
    run_parser.add_argument("file", help="Python file to run, or - for stdin")
    run_parser.add_argument("--timeout", type=float, default=None, help="Timeout in milliseconds")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = WorkbenchConfig.from_env()
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "schemas":
        return cmd_schemas(args)
    if args.command == "call":
        return cmd_call(args, config)
    if args.command == "run":
        return cmd_run(args, config)
    if args.command == "serve":
        return cmd_serve(args)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
