"""Entry point for the Sendo hand-off server."""

import structlog

from sendo.app import App
from sendo.config import Config
from sendo.logging import setup_logging
from sendo.web.runner import run_server

logger = structlog.get_logger(__name__)


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    logger.info(
        "sendo_starting",
        port=config.port,
        blobs_path=config.blobs_path,
        session_ttl_seconds=config.session_ttl_seconds,
        max_file_mb=config.max_file_mb,
    )
    run_server(App(config), config)


if __name__ == "__main__":
    main()
