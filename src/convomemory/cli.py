"""Conversational memory CLI: init and serve entry points.

Usage:
    convomemory init                 # Write ~/.convomemory/config.yaml (LanceDB)
    convomemory init --in-memory     # Ephemeral in-memory storage
    convomemory init --access-control
    convomemory serve                # Start the HTTP server
"""

import argparse
import sys
from pathlib import Path

CONVOMEMORY_DIR = Path.home() / ".convomemory"
CONFIG_FILE = CONVOMEMORY_DIR / "config.yaml"
DEFAULT_INSTANCE_ID = "default"

CONFIG_TEMPLATE = """\
# Conversational memory configuration

instance_id: {instance_id}

db:
  provider: {provider}
  path: {db_path}

server:
  host: 127.0.0.1
  port: 18791

memory:
  default_max_results: 10
  delete_page_size: 30

access_control:
  enabled: {access_control}
  user_header: X-Convomemory-User
"""


def cmd_init(args: argparse.Namespace) -> int:
    """Write a starter config file."""
    config_file = Path(args.config).expanduser() if args.config else CONFIG_FILE
    if config_file.exists() and not args.force:
        print(f"Config already exists: {config_file}")
        print("   Use --force to overwrite.")
        return 1

    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(CONFIG_TEMPLATE.format(
        instance_id=args.instance_id or DEFAULT_INSTANCE_ID,
        provider="memory" if args.in_memory else "lancedb",
        db_path=str(config_file.parent / "lancedb"),
        access_control="true" if args.access_control else "false",
    ))
    print(f"Config written: {config_file}")
    if args.in_memory:
        print("   In-memory storage: conversations are lost on restart.")
    print()
    print("Start the server with: convomemory serve")
    return 0


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the HTTP server."""
    from .server.app import run_server
    from .server.config import ConvoMemoryConfig

    config_path = args.config
    if config_path:
        config = ConvoMemoryConfig.from_file(config_path)
    else:
        config = ConvoMemoryConfig.from_env()

    run_server(
        config=config,
        host=args.host,
        port=args.port,
        log_level=args.log_level or "info",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="convomemory",
        description="Conversational memory for GenAI applications",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init
    init_parser = subparsers.add_parser("init", help="Write a starter config file")
    init_parser.add_argument("--in-memory", action="store_true",
                             help="Use ephemeral in-memory storage instead of LanceDB")
    init_parser.add_argument("--access-control", action="store_true",
                             help="Scope conversations to the user header")
    init_parser.add_argument("--instance-id", type=str, default=None,
                             help="Instance identifier (default: 'default')")
    init_parser.add_argument("--config", "-c", type=str, default=None,
                             help="Config file to write (default: ~/.convomemory/config.yaml)")
    init_parser.add_argument("--force", action="store_true",
                             help="Overwrite existing config")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", "-p", type=int, default=None)
    serve_parser.add_argument("--config", "-c", type=str, default=None)
    serve_parser.add_argument("--log-level", type=str, default=None,
                              choices=["debug", "info", "warning", "error"])
    return parser


def main() -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "init":
        sys.exit(cmd_init(args))
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
