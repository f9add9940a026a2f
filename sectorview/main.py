"""Run the SectorView API with uvicorn."""

from __future__ import annotations

import uvicorn

from sectorview.api import create_api_app
from sectorview.core.config import settings
from sectorview.core.logging import setup_logging


setup_logging()
app = create_api_app()


def main() -> None:
    uvicorn.run(
        "sectorview.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=None,
    )


if __name__ == "__main__":
    main()
