"""Command-line entry point for the agent dispatcher."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from .config import ConfigError, DispatcherConfig, load_config
from .runtime.hooks.settings import default_settings_path, merge_hook_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Agent Dispatcher - hand tracker tasks to detached coding agents",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (environment variables override it)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Hook server bind host (default: from config, 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Hook server port (default: from config, 8081)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--install-hooks",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Merge Stop/SessionEnd forwarding hooks into the agent settings file (default: on)",
    )
    parser.add_argument(
        "--settings-path",
        type=Path,
        default=None,
        help="Agent settings file to install hooks into (default: ~/.claude/settings.json)",
    )
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> DispatcherConfig:
    config = load_config(args.config)
    changes: dict[str, object] = {}
    if args.host:
        changes["hook_server_host"] = args.host
    if args.port:
        changes["hook_server_port"] = args.port
    return replace(config, **changes) if changes else config


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        config = resolve_config(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    if not config.workers:
        logger.error("No worker slots configured; set 'workers' in the config file or AI_01_LIST_ID/AI_01_SRC_PATH")
        return 2

    if args.install_hooks:
        settings_path = args.settings_path or default_settings_path()
        try:
            merge_hook_settings(settings_path, config.hook_server_port)
        except OSError:
            logger.warning("Installing agent hooks into %s failed; continuing", settings_path, exc_info=True)

    import uvicorn

    from .runtime.container import Container
    from .server.api import create_app

    app = create_app(Container(config))
    for worker in config.workers:
        logger.info("Worker %s: queue=%s path=%s", worker.id, worker.source_queue_id, worker.src_path)
    uvicorn.run(app, host=config.hook_server_host, port=config.hook_server_port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
