"""
Command-line interface for the ocmshare server.

Settings come from the OCMSHARE_* environment variables; flags given on
the command line override them.
"""

import argparse
import sys

from .config import ServerConfig, parse_users, split_list


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ocmshare-server",
        description="Open Cloud Mesh share exchange server",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (default: sqlite:///./ocmshare.db)",
    )
    parser.add_argument(
        "--api-keys",
        default=None,
        help="Comma-separated list of management API keys (default: dev-admin-key)",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Public URL of this server, used in discovery and messages",
    )
    parser.add_argument(
        "--trust-policy",
        default=None,
        choices=["open", "allowlist", "trustless"],
        help="How remote servers are trusted (default: allowlist)",
    )
    parser.add_argument(
        "--trusted-servers",
        default=None,
        help="Comma-separated list of trusted remote servers",
    )
    parser.add_argument(
        "--local-users",
        default=None,
        help="Comma-separated local users that may receive shares, as uid[:Display Name]",
    )
    parser.add_argument(
        "--local-groups",
        default=None,
        help="Comma-separated local groups that may receive shares",
    )
    parser.add_argument(
        "--max-try",
        type=int,
        default=None,
        help="Failed deliveries before a share job is abandoned (default: 20)",
    )
    parser.add_argument(
        "--retry-interval",
        type=int,
        default=None,
        help="Seconds between two delivery attempts (default: 600)",
    )
    parser.add_argument(
        "--claim-timeout",
        type=int,
        default=None,
        help="Seconds a running delivery job stays locked (default: 300)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Enable debug mode",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )
    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment configuration with the given command-line flags applied."""
    config = ServerConfig.from_env()

    for name in ("host", "port", "database_url", "base_url", "trust_policy", "debug", "log_level"):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)

    if args.api_keys is not None:
        config.api_keys = set(split_list(args.api_keys))
    if args.trusted_servers is not None:
        config.trusted_servers = split_list(args.trusted_servers)
    if args.local_users is not None:
        config.local_users = parse_users(args.local_users)
    if args.local_groups is not None:
        config.local_groups = split_list(args.local_groups)

    if args.max_try is not None:
        config.federation.max_try = args.max_try
    if args.retry_interval is not None:
        config.federation.interval = args.retry_interval
    if args.claim_timeout is not None:
        config.federation.claim_timeout = args.claim_timeout

    return config


def main(argv=None):
    """Main entry point for the CLI."""
    config = build_config(build_parser().parse_args(argv))

    from .app import OCMShareServer

    print(f"""
ocmshare server v0.1.0
  Host: {config.host}
  Port: {config.port}
  Database: {config.database_url}
  Trust policy: {config.trust_policy}
  Discovery: {config.base_url.rstrip("/")}/.well-known/ocm

Press Ctrl+C to stop the server.
""")

    try:
        server = OCMShareServer(config=config)
        server.run()
    except KeyboardInterrupt:
        print("\nServer stopped.")
        sys.exit(0)


if __name__ == "__main__":
    main()
