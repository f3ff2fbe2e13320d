from outline_manager.observability.logger import logger
from outline_manager.observability.logging import LogConfig, setup_logging, teardown_logging

__all__ = ["LogConfig", "logger", "setup_logging", "teardown_logging"]
