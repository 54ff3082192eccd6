"""
Main entry point for the transaction manager service.

This module loads configuration, prepares the transaction store
and starts the FastAPI server.
"""
import sys
from pathlib import Path

# Add project root to Python path for module imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv
from pydantic import ValidationError as SettingsValidationError

from core.config import get_settings
from core.exceptions import ConfigurationError
from core.logger import set_log_level, setup_logger

# Load environment variables from .env file
_env_file = PROJECT_ROOT / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

logger = setup_logger(__name__)


def load_settings():
    """Load settings, turning validation failures into ConfigurationError."""
    try:
        return get_settings()
    except SettingsValidationError as e:
        raise ConfigurationError(
            "Invalid configuration",
            details={"errors": e.errors(include_url=False, include_context=False)}
        )


def main():
    """Main application entry point."""
    try:
        settings = load_settings()
        set_log_level(settings.log_level)

        import uvicorn
        from app.api import app

        logger.info(f"Starting {settings.app_name}")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Log Level: {settings.log_level}")
        logger.info(f"Database: {settings.database_path}")

        logger.info(f"Starting server on {settings.host}:{settings.port}")

        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower()
        )

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}")
        if e.details:
            logger.error(f"Details: {e.details}")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Failed to start application: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
