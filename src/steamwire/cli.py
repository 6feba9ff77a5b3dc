"""CLI entry point for querying and administering Source servers."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from typing import TYPE_CHECKING

from steamwire import errors
from steamwire.client import QueryClient, RconClient
from steamwire.config import (
    AppConfig,
    ServerConfig,
    load_config,
)
from steamwire.formatting import format_info, format_players, format_rules
from steamwire.repl import run_repl

if TYPE_CHECKING:
    from collections.abc import Callable

# action -> (QueryClient method name, formatter)
_QUERY_ACTIONS: dict[str, tuple[str, Callable]] = {
    "info": ("info", format_info),
    "players": ("players", format_players),
    "rules": ("rules", format_rules),
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "server",
        nargs="?",
        help="Server name (from config) or host:port (e.g., 10.0.0.5:27015)",
    )
    common.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Socket timeout in milliseconds (default: from config, else 1000)",
    )
    common.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Log protocol details to stderr",
    )

    parser = argparse.ArgumentParser(
        prog="steamwire",
        description="Query and control Source engine game servers",
    )
    actions = parser.add_subparsers(dest="action", required=True)
    actions.add_parser("info", parents=[common], help="Show server information")
    actions.add_parser("players", parents=[common], help="List connected players")
    actions.add_parser("rules", parents=[common], help="List server rules (cvars)")

    rcon = actions.add_parser("rcon", parents=[common], help="Open an RCON session")
    rcon.add_argument(
        "-p",
        "--password",
        help="RCON password (overrides the config file)",
    )
    rcon.add_argument(
        "-c",
        "--command",
        help="Execute a single command and exit (non-interactive mode)",
    )
    return parser


def select_server(config: AppConfig) -> tuple[str, ServerConfig]:
    """Prompt the user to select from configured servers.

    Returns (key, ServerConfig).
    """
    servers = list(config.servers.items())
    if not servers:
        print("No server given and none configured.", file=sys.stderr)
        sys.exit(1)

    print("Available servers:")
    for i, (_key, srv) in enumerate(servers, 1):
        print(f"  {i}. {srv.name} ({srv.host}:{srv.port})")

    while True:
        try:
            choice = input(f"\nSelect server [1-{len(servers)}]: ").strip()
            idx = int(choice) - 1
            if 0 <= idx < len(servers):
                return servers[idx]
        except ValueError:
            pass
        except EOFError:
            sys.exit(1)
        print(f"Please enter a number between 1 and {len(servers)}")


def resolve_server(
    server_arg: str | None, config: AppConfig
) -> tuple[str, ServerConfig]:
    """Resolve the target server from CLI arg or interactive selection.

    Returns (display_name, ServerConfig).
    """
    if server_arg is not None:
        if server_arg in config.servers:
            return server_arg, config.servers[server_arg]

        if ":" in server_arg:
            host, port_str = server_arg.rsplit(":", 1)
            try:
                port = int(port_str)
                return server_arg, ServerConfig(name=server_arg, host=host, port=port)
            except ValueError:
                pass

        return server_arg, ServerConfig(name=server_arg, host=server_arg)

    if config.default_server and config.default_server in config.servers:
        key = config.default_server
        return key, config.servers[key]

    return select_server(config)


def resolve_password(password_arg: str | None, server: ServerConfig) -> str:
    """Resolve the RCON password from the CLI flag, config, or a prompt."""
    if password_arg is not None:
        return password_arg
    if server.password is not None:
        return server.password
    try:
        return getpass.getpass(f"RCON password for {server.name}: ")
    except (EOFError, KeyboardInterrupt):
        print(file=sys.stderr)
        sys.exit(1)


def run_query(action: str, server: ServerConfig, timeout_ms: int) -> None:
    """Run one query action and print its formatted result."""
    method_name, formatter = _QUERY_ACTIONS[action]
    with QueryClient(server.host, server.port, timeout_ms=timeout_ms) as query:
        try:
            result = getattr(query, method_name)()
        except errors.SteamError as e:
            print(f"Query failed: {e}", file=sys.stderr)
            sys.exit(1)
    print(formatter(result))


def run_rcon(
    display_name: str,
    server: ServerConfig,
    args: argparse.Namespace,
    timeout_ms: int,
) -> None:
    """Authenticate, then run one command or the interactive REPL."""
    password = resolve_password(args.password, server)

    client = RconClient(server.host, server.effective_rcon_port, timeout_ms=timeout_ms)
    try:
        client.connect()
        client.authenticate(password)
    except errors.AuthenticationError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        client.close()
        sys.exit(1)
    except errors.SteamError as e:
        print(f"Connection failed: {e}", file=sys.stderr)
        client.close()
        sys.exit(1)

    if args.command:
        try:
            response = client.execute(args.command)
        except errors.SteamError as e:
            print(f"Command failed: {e}", file=sys.stderr)
            sys.exit(1)
        finally:
            client.close()
        if response:
            print(response.rstrip("\n"))
        return

    print(f"Connected to {display_name} ({server.host}:{server.effective_rcon_port})")
    print("Ctrl+D or 'exit' to quit.\n")
    try:
        run_repl(client, password, query_port=server.port, timeout_ms=timeout_ms)
    finally:
        client.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s | %(message)s")

    try:
        config = load_config()
    except errors.ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    display_name, server = resolve_server(args.server, config)
    timeout_ms = args.timeout if args.timeout is not None else config.timeout_ms

    if args.action == "rcon":
        run_rcon(display_name, server, args, timeout_ms)
    else:
        run_query(args.action, server, timeout_ms)
