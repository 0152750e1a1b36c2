"""Command line launcher for the Streamlit thumbnail generator."""
from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
from typing import Iterable, Optional

from animethumb import config

UI_SCRIPT = pathlib.Path(__file__).with_name("ui.py")

logger = logging.getLogger("animethumb.cli")


def _log_level_arg(value: str) -> str:
    try:
        return config.normalize_log_level(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Launch the anime thumbnail generator UI. The OpenRouter API key is "
            f"read from {config.API_KEY_ENV}."
        )
    )
    parser.add_argument(
        "--env-file",
        default=config.DEFAULT_ENV_FILE,
        help=f"Path to a .env file containing {config.API_KEY_ENV}.",
    )
    parser.add_argument(
        "--log-level",
        default=config.DEFAULT_LOG_LEVEL,
        type=_log_level_arg,
        help="Logging level to emit (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)

    config.configure_logging(args.log_level)

    # The Streamlit script reads these when the first browser session starts
    os.environ[config.ENV_FILE_ENV] = str(pathlib.Path(args.env_file).expanduser())
    os.environ[config.LOG_LEVEL_ENV] = args.log_level

    from streamlit.web import cli as streamlit_cli

    logger.info("Starting Streamlit UI from %s", UI_SCRIPT)
    sys.argv = ["streamlit", "run", str(UI_SCRIPT)]
    return streamlit_cli.main()


if __name__ == "__main__":
    sys.exit(main())
