from __future__ import annotations

import logging

import uvicorn

from .core.config import settings


def main() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.app_env == "development" else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info("Media service URL: %s", settings.livekit_url)
    uvicorn.run("gamerscream.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
