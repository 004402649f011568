import sys

import uvicorn

from app import create_app
from exceptions import TLSConfigurationError
from logging_config import get_logger, setup_logging
from settings import RelaySettings

logger = get_logger(__name__)


def main() -> int:
    settings = RelaySettings.from_env()
    setup_logging(log_level=settings.log_level, log_file=settings.log_file)

    try:
        ssl_options = settings.ssl_options()
    except TLSConfigurationError as e:
        for credential in e.missing:
            logger.error(f"HTTPS is enabled but the SSL {credential} file is not configured or does not exist")
        logger.error("Failed to start server: no listener was bound")
        return 1

    app = create_app(settings)
    logger.info(f"Starting pm-relay using {settings.scheme} on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None, **ssl_options)
    return 0


if __name__ == "__main__":
    sys.exit(main())
