"""Run the daemon with uvicorn: ``python -m deployhook``."""

import uvicorn

from deployhook.config import settings
from deployhook.services.config_resolver import load_config


def main() -> None:
    # The document's port wins over the environment so one file describes the host
    port = load_config(settings.config_path).default.port or settings.port
    uvicorn.run(
        "deployhook.main:app",
        host=settings.host,
        port=port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
