"""Standalone FastAPI server entry point.

Run with: python run.py
"""
import logging
import uvicorn

from imagen_bridge.core import BridgeConfig

config = BridgeConfig.from_env()

# Configure logging to show debug info
logging.basicConfig(
    level=getattr(logging, config.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

if __name__ == "__main__":
    uvicorn.run(
        "imagen_bridge.fastapi_app:app",
        host=config.host,
        port=config.port,
    )
