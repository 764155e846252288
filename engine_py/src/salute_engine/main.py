"""FastAPI main application for the Salute game server"""

import logging

from .config import ServerConfig
from .ws.server import create_app

config = ServerConfig.from_env()

logging.basicConfig(
    level=config.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app(config)
