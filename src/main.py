"""Main entry point for the WellnessHub gamification API"""
import logging
import sys

import uvicorn

from src.config import validate_config, API_HOST, API_PORT, LOG_LEVEL
from src.exceptions import ConfigurationError
from src.api.server import create_api_application

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Validate configuration and serve the API"""
    try:
        logger.info("Validating configuration...")
        validate_config()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    app = create_api_application()

    logger.info(f"Serving API on {API_HOST}:{API_PORT}")
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
