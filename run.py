import logging
import sys

import uvicorn

from pageinsight.api.app import create_app
from pageinsight.config import validate_settings
from pageinsight.container import Container
from pageinsight.exceptions import ConfigError
from pageinsight.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main(container: Container = None):
    container = container if container is not None else Container()
    settings = container.config()

    try:
        validate_settings(settings)
    except ConfigError as e:
        print(f"{e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings["LOG_LEVEL"])
    app = create_app(container)

    logger.info("server starting host=%s port=%s", settings["HOST"], settings["PORT"])
    uvicorn.run(
        app,
        host=settings["HOST"],
        port=int(settings["PORT"]),
        timeout_graceful_shutdown=int(settings["SHUTDOWN_TIMEOUT_SECONDS"]),
        log_config=None,
    )
    logger.info("server stopped")


if __name__ == '__main__':
    main()
