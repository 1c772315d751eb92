"""Run the local API server: ``python -m agrisearch.api``."""

import uvicorn

from agrisearch.config import get_settings


def main() -> None:
    """Serve the API on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "agrisearch.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
