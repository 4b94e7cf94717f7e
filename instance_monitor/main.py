"""CLI entrypoint for launching the exporter with Uvicorn."""
from __future__ import annotations

import argparse
import logging
import socket
from typing import List, Optional

import uvicorn

from .api import create_app
from .config import Settings, load_settings, parse_delay, parse_port
from .errors import ConfigError, ServerStartError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="instance-monitor",
        description="A simple monitor for system metrics",
    )
    parser.add_argument("--host", help="interface to listen on (INSTANCE_MONITOR_HOST, default 0.0.0.0)")
    parser.add_argument("--port", type=parse_port, help="port to listen on (INSTANCE_MONITOR_PORT, default 8080)")
    parser.add_argument(
        "--delay",
        type=parse_delay,
        help="seconds between host samples (INSTANCE_MONITOR_DELAY, default 5)",
    )
    parser.add_argument("--log-level", help="logging verbosity (INSTANCE_MONITOR_LOG_LEVEL, default error)")
    parser.add_argument(
        "--instance",
        help="value of the instance label (INSTANCE_MONITOR_INSTANCE, resolved from the host when omitted)",
    )
    return parser


def parse_settings(argv: Optional[List[str]] = None) -> Settings:
    """Flags win over environment variables; unset flags fall back to the environment."""
    args = build_parser().parse_args(argv)
    return load_settings(
        host=args.host,
        port=args.port,
        delay=args.delay,
        log_level=args.log_level,
        instance=args.instance,
    )


def bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        raise ServerStartError(f"failed to bind {host}:{port}: {exc}") from exc
    sock.set_inheritable(True)
    return sock


def serve(settings: Settings) -> None:
    sock = bind_socket(settings.host, settings.port)
    port = sock.getsockname()[1]
    print(
        f"Listening at: http://{settings.host}:{port}\n"
        f"Metrics endpoint: http://{settings.host}:{port}/metrics"
    )
    config = uvicorn.Config(create_app(settings), log_level=settings.log_level)
    try:
        uvicorn.Server(config).run(sockets=[sock])
    finally:
        sock.close()


def main(argv: Optional[List[str]] = None) -> None:
    try:
        settings = parse_settings(argv)
    except ConfigError as exc:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT)
        logger.error("Invalid configuration: %s", exc)
        raise SystemExit(2) from exc

    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    try:
        serve(settings)
    except ServerStartError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
