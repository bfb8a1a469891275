"""Uvicorn runner for the Sendo web app."""

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from sendo.app import App
from sendo.config import Config
from sendo.web.server import create_fastapi_app


def run_server(app: App, config: Config) -> None:
    """Serve the API, trusting X-Forwarded-* headers so join links carry the public origin."""
    log_config = LOGGING_CONFIG.copy()
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s - %(levelname)s - %(message)s"

    uvicorn.run(
        create_fastapi_app(app, config),
        host=config.host,
        port=config.port,
        log_config=log_config,
        access_log=config.debug,  # Request lines carry role tokens
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
