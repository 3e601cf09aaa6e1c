"""Process entry point: ``tipme`` console script or ``python -m tipme.server``."""
import logging

import uvicorn

from .config import get_settings


def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info("Tip Me API listening on %s:%d", settings.host, settings.port)
    uvicorn.run("tipme.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
