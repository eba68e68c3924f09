"""Run the service with uvicorn: ``python -m userapi``."""

import logging

import uvicorn

from .api import create_app
from .config import Settings


def main() -> None:
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    app = create_app(settings)
    logging.getLogger(__name__).info("Server is running on port %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
