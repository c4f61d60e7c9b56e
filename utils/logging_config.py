"""
Logging setup - all events go to logs/app.log and the console, errors also to
logs/error.log, and each realtime/billing concern gets its own file.
"""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# logger name -> file under the log directory
CONCERN_LOGS = {
    "realtime": "websocket.log",
    "routers.ws_router": "websocket.log",
    "services.connection_manager": "websocket.log",
    "services.notification_service": "notification.log",
    "services.billing_service": "stripe.log",
    "routers.billing_router": "stripe.log",
}


def configure_logging(log_dir: Optional[Path] = None, level: int = logging.INFO) -> Path:
    log_dir = Path(log_dir or "./logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    error_handler = logging.FileHandler(log_dir / "error.log")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_dir / "app.log"),
            logging.StreamHandler(),
            error_handler,
        ],
    )

    handlers = {}
    for name, filename in CONCERN_LOGS.items():
        if filename not in handlers:
            handler = logging.FileHandler(log_dir / filename)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handlers[filename] = handler
        logger = logging.getLogger(name)
        if handlers[filename] not in logger.handlers:
            logger.addHandler(handlers[filename])

    return log_dir
