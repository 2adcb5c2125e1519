"""Run the development server: ``python -m llmroute``."""

from __future__ import annotations

import uvicorn

from llmroute.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "llmroute.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_dev,
        log_config=None,
    )


if __name__ == "__main__":
    main()
