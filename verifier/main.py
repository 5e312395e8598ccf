"""Application entry point for the college email verifier API server."""

import uvicorn

from verifier.api.app import app
from verifier.utils.config import load_config
from verifier.utils.logger import setup_logging


def main() -> None:
    """Start the FastAPI application server."""
    config = load_config()
    setup_logging(config.log_level)
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
