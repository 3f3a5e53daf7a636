from __future__ import annotations

import logging
import sys

import uvicorn

from .app import create_app
from .config_loader import load_config_from_env


def setup_logging() -> None:
    """
    Send gateway logs to stdout.

    Request arrivals, queue timeouts and failed remote calls are all logged at
    INFO or above; httpx's own per-request lines are muted to WARNING.
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Set uvicorn logging to INFO to capture server events
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    # httpx logs every request at INFO; the client already logs its calls
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main() -> None:
    setup_logging()

    logger = logging.getLogger(__name__)
    logger.info("Starting MET Drive Gateway server")

    config = load_config_from_env()
    if not config.client_id or not config.client_secret:
        logger.warning("GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set; authentication will fail")
    logger.info(f"Server running on http://{config.host}:{config.port}")

    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
