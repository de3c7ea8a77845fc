"""Run the service with uvicorn: python -m simple_secrets"""

import uvicorn

from simple_secrets.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "simple_secrets.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
