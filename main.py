import sys

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

from src.api.waitlist_server import run_server  # noqa: E402
from src.config import get_settings  # noqa: E402


def configure_logging() -> None:
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper())


if __name__ == "__main__":
    configure_logging()
    logger.info("Starting waitlist service")
    run_server()
