"""
TLV Engine - Main Entry Point

Runs the TLV Parser API server:

    python -m tlv_engine --port 3000 --log-level DEBUG
    python -m tlv_engine --config tlv.yaml
"""

import argparse
import logging
import sys

from .core.config import LogLevel, TlvEngineConfig, load_config, set_config
from .api.server import run_server

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tlv-engine",
        description="EMV Field 55 / Field 48 TLV parsing and validation API",
    )
    parser.add_argument("--host", type=str, help="Interface to bind the API to")
    parser.add_argument("--port", type=int, help="API port (default 3000)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=[level.value for level in LogLevel],
        help="Logging verbosity",
    )
    parser.add_argument("--config", type=str, help="YAML configuration file")
    parser.add_argument(
        "--development",
        action="store_true",
        help="Development mode: debug flag, API docs and a tlv_engine.log file",
    )
    parser.add_argument(
        "--reload", action="store_true", help="Reload on code changes (with --development)"
    )
    return parser


def resolve_config(args: argparse.Namespace) -> TlvEngineConfig:
    """File or environment configuration with command line overrides applied."""
    config = load_config(args.config) if args.config else TlvEngineConfig.load_from_env()

    if args.host:
        config.rest_host = args.host
    if args.port:
        config.rest_port = args.port
    if args.log_level:
        config.log_level = LogLevel(args.log_level)
    if args.development:
        config.debug = True

    set_config(config)
    return config


def main(argv=None):
    """Main entry point for the TLV Engine."""
    args = build_arg_parser().parse_args(argv)

    handlers = [logging.StreamHandler(sys.stdout)]
    if args.development:
        handlers.append(logging.FileHandler("tlv_engine.log"))

    try:
        config = resolve_config(args)
    except Exception as e:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT, handlers=handlers)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, config.log_level.value),
        format=LOG_FORMAT,
        handlers=handlers,
    )
    logger.info(
        f"Starting {config.service_name} {config.version} "
        f"({'development' if args.development else config.environment.value})"
    )

    try:
        run_server(config, reload=args.development and args.reload)
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")


if __name__ == "__main__":
    main()
