#!/usr/bin/env python3
"""Startup script for the Salute game server"""

import logging

import uvicorn

from .config import ServerConfig

logger = logging.getLogger(__name__)


def main():
    config = ServerConfig.from_env()
    logging.basicConfig(level=config.log_level.upper())

    logger.info(f"Starting Salute game server on {config.host}:{config.port}")
    logger.info(f"Health check available at: http://{config.host}:{config.port}/health")
    logger.info(f"WebSocket endpoint: ws://{config.host}:{config.port}/ws")

    uvicorn.run(
        "salute_engine.main:app",
        host=config.host,
        port=config.port,
        reload=config.reload,
        log_level=config.log_level,
    )


if __name__ == "__main__":
    main()
