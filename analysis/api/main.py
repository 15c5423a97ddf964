from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

import uvicorn
from dotenv import load_dotenv

from ..ai.factory import build_classifier
from ..config_loader import CLASSIFIER_BACKENDS, DEFAULT_CONFIG_PATH, load_config
from .server import create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser; CLI flags override the JSON config."""
    parser = argparse.ArgumentParser(
        description="Run the CashGuard inference API server",
        epilog=f"Configuration is loaded from {DEFAULT_CONFIG_PATH} when present.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=str(DEFAULT_CONFIG_PATH),
        help=f"Path to JSON configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--host", type=str, default=None, help="Override server host")
    parser.add_argument("--port", type=int, default=None, help="Override server port")
    parser.add_argument(
        "--classifier",
        choices=[kind for kind in CLASSIFIER_BACKENDS if kind != "http"],
        default=None,
        help="Override classifier backend",
    )
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format="%(levelname)s [%(name)s] %(message)s",
        )

    try:
        cfg = load_config(args.config if Path(args.config).exists() else None)
    except (OSError, ValueError) as exc:
        logger.error("Failed to load configuration: %s", exc)
        sys.exit(1)

    if args.host:
        cfg.server.host = args.host
    if args.port:
        cfg.server.port = args.port
    if args.classifier:
        cfg.classifier.backend = args.classifier
    if cfg.classifier.backend == "http":
        logger.error("The inference server cannot use the 'http' classifier backend")
        sys.exit(1)

    try:
        classifier = build_classifier(cfg.classifier)
    except RuntimeError as exc:
        logger.error("Failed to initialise classifier: %s", exc)
        sys.exit(1)

    logger.info("Server configuration: %s:%s", cfg.server.host, cfg.server.port)
    app = create_app(classifier=classifier)
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_level="info")


if __name__ == "__main__":
    main()
