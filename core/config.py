"""Application configuration"""

import importlib
import logging
import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from core.messaging import MessagingClientFactory

load_dotenv()

VERSION = "1.0.0"

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_DEVICE_MODEL = f"E2E Test Server v{VERSION}"


def load_factory(path: str) -> MessagingClientFactory:
    """Resolve a ``module:attribute`` path to a messaging client factory."""
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Messaging client must look like 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attribute)


class Config:
    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        env = os.environ if values is None else values

        self.HOST: str = str(env.get("HOST", "0.0.0.0"))
        self.PORT_HTTP: int = int(env.get("PORT_HTTP", "21080"))
        self.MAX_INSTANCES: int = int(env.get("MAX_INSTANCES", "50"))
        self.MESSAGE_CACHE_SIZE: int = int(env.get("MESSAGE_CACHE_SIZE", "1000"))
        self.MESSAGING_CLIENT: str = str(env.get("MESSAGING_CLIENT", "core.loopback:LoopbackClient"))
        self.LOG_LEVEL: str = str(env.get("LOG_LEVEL", "INFO")).upper()
        self.CORS_ORIGINS: List[str] = [
            origin.strip() for origin in str(env.get("CORS_ORIGINS", "*")).split(",") if origin.strip()
        ]

        invalid = [
            name for name, value in (
                ("MAX_INSTANCES", self.MAX_INSTANCES),
                ("MESSAGE_CACHE_SIZE", self.MESSAGE_CACHE_SIZE),
            ) if value < 0
        ]
        if invalid:
            raise ValueError(f"Negative capacities: {', '.join(invalid)}")

    def client_factory(self) -> MessagingClientFactory:
        return load_factory(self.MESSAGING_CLIENT)


def configure_logging(config: Config) -> None:
    logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT, level=config.LOG_LEVEL)
