"""Entrypoint: serve the DataChat streaming API."""

import uvicorn

from datachat.config.settings import Settings
from datachat.observability.logger import setup_logging


def main() -> None:
    settings = Settings()
    setup_logging(settings.log_level, settings.log_json)
    # Open SSE streams get a short grace period before shutdown cancels them.
    uvicorn.run(
        "datachat.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=5,
    )


if __name__ == "__main__":
    main()
