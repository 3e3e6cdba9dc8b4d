"""Run the Cashbook API server: ``python -m cashbook`` or ``cashbook-server``."""

from __future__ import annotations

import logging
import os
import sys

import uvicorn

from cashbook.api import create_app
from cashbook.config import ConfigError, load_config


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = load_config()
        config.validate()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    uvicorn.run(create_app(config), host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
