import logging
import sys
from shared.settings import settings

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout) # Log to stdout, suitable for containers
    ]
)

# httpx logs every outgoing request at INFO, which would include identity-provider URLs with the API key
if settings.LOG_LEVEL.upper() != "DEBUG":
    logging.getLogger("httpx").setLevel(logging.WARNING)

def get_logger(name: str) -> logging.Logger:
    """Returns a configured logger instance."""
    return logging.getLogger(name)
