from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from apps.mcp_gateway.config import ConfigurationError, GatewaySettings, load_settings
from apps.mcp_gateway.http import create_app

_UVICORN_LOG_LEVELS = {
    "DEBUG": "debug",
    "INFO": "info",
    "WARNING": "warning",
    "ERROR": "error",
    "CRITICAL": "critical",
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the Confluence MCP gateway")
    parser.add_argument("--config", default=None, help="Path to a YAML settings file")
    parser.add_argument("--host", default=None, help="HTTP host (default 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (default $PORT or 3000)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARN", "WARNING", "ERROR"],
        default=None,
        help="Logging level",
    )
    parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for the JSONL dispatch log",
    )
    parser.add_argument(
        "--session-ttl",
        type=float,
        default=None,
        help="Seconds of inactivity before a session expires (0 disables expiry)",
    )
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> GatewaySettings:
    return load_settings(
        config_path=args.config,
        overrides={
            "host": args.host,
            "port": args.port,
            "log_level": args.log_level,
            "log_dir": args.log_dir,
            "session_ttl_seconds": args.session_ttl,
        },
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = resolve_settings(args)
        logging.basicConfig(level=getattr(logging, settings.log_level))
        app = create_app(settings)
    except ConfigurationError as exc:
        print(f"mcp-gateway: {exc}", file=sys.stderr)
        return 2
    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=_UVICORN_LOG_LEVELS[settings.log_level],
            access_log=False,
        )
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
