"""Entrypoint: python -m webhook_dispatcher"""
from __future__ import annotations

import logging

import uvicorn

from webhook_dispatcher.api.middleware.correlation_id import CorrelationIdLogFilter

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s]: %(message)s"


def main() -> None:
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdLogFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=logging.INFO, handlers=[handler])

    uvicorn.run(
        "webhook_dispatcher.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level="info",
        log_config=None,
    )


if __name__ == "__main__":
    main()
