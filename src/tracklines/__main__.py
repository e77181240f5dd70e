"""Run the tracklines server with ``python -m tracklines``."""

import uvicorn

from .config import config_manager, get_config
from .utils.logging_config import ComponentLogger, get_logger, initialize_logging


def main() -> None:
    config = get_config()
    initialize_logging(debug=config.server.debug)
    logger = get_logger('main')
    logger.info(f"Logging to {ComponentLogger.get_log_directory()}")

    for issue in config_manager.validate_config():
        logger.warning(f"Configuration issue: {issue}")

    logger.info(f"Starting server on {config.server.host}:{config.server.port}")
    uvicorn.run(
        "tracklines.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.app.log_level.lower(),
        reload=False,
    )
    ComponentLogger.shutdown()


if __name__ == "__main__":
    main()
