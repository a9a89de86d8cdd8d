"""Entry point for running the Fiscalis API with uvicorn."""

import os

import uvicorn
from loguru import logger

from src.core.config import get_settings
from src.core.logging import setup_logging


def _uvicorn_log_config() -> dict[str, object]:
    """Route uvicorn's own loggers through Loguru."""
    handler = {"handlers": ["default"], "level": "INFO", "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {"class": "src.core.logging.InterceptHandler"},
        },
        "loggers": {
            "uvicorn": handler,
            "uvicorn.error": handler,
            "uvicorn.access": handler,
        },
    }


def main() -> None:
    settings = get_settings()
    setup_logging(settings)

    # Container platforms pass the listening port through PORT
    port = int(os.environ.get("PORT", settings.api_port))
    reload = settings.debug and not settings.is_production

    logger.info(
        "Starting Uvicorn on http://{}:{} (reload={})",
        settings.api_host,
        port,
        reload,
    )
    uvicorn.run(
        "src.api.main:app",
        host=settings.api_host,
        port=port,
        reload=reload,
        log_config=_uvicorn_log_config(),
    )


if __name__ == "__main__":
    main()
