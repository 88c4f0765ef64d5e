"""Application entry point for the document text extraction API server."""

import argparse
import os
from pathlib import Path

import uvicorn

from docextract.api.app import app
from docextract.utils.config import load_config
from docextract.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Start the FastAPI application server.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(description="Document text extraction API server")
    parser.add_argument("-c", "--config", type=Path, help="YAML configuration file")
    parser.add_argument("--host", help="Bind address (overrides api.host)")
    parser.add_argument("--port", type=int, help="Bind port (overrides api.port)")
    args = parser.parse_args(argv)

    if args.config is not None:
        # The app loads its extractor lazily through load_config().
        os.environ["DOCEXTRACT_CONFIG"] = str(args.config)

    config = load_config(args.config)
    setup_logging(config.log_level)

    host = args.host or config.api.host
    port = args.port or config.api.port
    logger.info("Starting API server on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
