"""Run the proxy with uvicorn: ``python -m chatbridge``."""

import uvicorn

from chatbridge.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "chatbridge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
