"""Application entry point."""

import uvicorn

from simple_weather.core.config import settings


def main():
    """Run the uvicorn server."""
    uvicorn.run(
        "simple_weather.app:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=False,
        # One updater per process owns the refresh timer
        workers=1,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
