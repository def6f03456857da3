"""Main entry point for the campus2career service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence, Tuple

import uvicorn

from campus2career.api import create_app
from campus2career.config.environment import EnvironmentConfig
from campus2career.config.exceptions import ConfigurationError
from campus2career.config.loader import load_config, validate_config_file
from campus2career.config.models import AppConfig
from campus2career.container import build_services
from campus2career.logging import get_logger
from campus2career.logging.config import configure_logging
from campus2career.persistence.database import close_database, init_database
from campus2career.tasks import InlineTaskRunner

logger = get_logger(__name__, component="cli")

EXIT_OK = 0
EXIT_RUNTIME_ERROR = 1
EXIT_CONFIG_ERROR = 2


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)
    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level
    return app_config, env_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="campus2career - application reconciliation and notification service"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    parser.add_argument("--host", default=None, help="Bind address (overrides api.host)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (overrides api.port)")
    parser.add_argument(
        "--repair-once",
        action="store_true",
        help="Run a single repair pass and exit",
    )
    parser.add_argument(
        "--validate-config",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        0 on success, 1 on runtime failure, 2 on configuration error
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    if args.validate_config:
        config_file = args.config or Path("config.yaml")
        return EXIT_OK if validate_config_file(config_file) else EXIT_CONFIG_ERROR

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )
        logger.info(
            "campus2career starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "repair_once": args.repair_once,
            },
        )

        init_database(env_config.database_url)

        if args.repair_once:
            container = build_services(app_config, env_config, task_runner=InlineTaskRunner())
            try:
                summary = container.repair_job.run()
            finally:
                container.close()
                close_database()
            logger.info(
                "campus2career stopped",
                extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
            )
            return EXIT_RUNTIME_ERROR if summary.failed else EXIT_OK

        container = build_services(app_config, env_config)
        app = create_app(container, manage_services=True)
        host = args.host or app_config.api.host
        port = args.port or app_config.api.port
        logger.info(
            f"Serving API on {host}:{port}",
            extra={"event": "service.serving", "host": host, "port": port},
        )
        try:
            uvicorn.run(app, host=host, port=port, log_config=None)
        finally:
            close_database()

        logger.info(
            "campus2career stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )
        return EXIT_OK

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return EXIT_OK
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
