import logging
import traceback
from typing import Optional

PACKAGE_LOGGER = 'tag_retention'
DEFAULT_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def setup_logging(level: int = logging.INFO, fmt: Optional[str] = None) -> None:
	"""Configure root logging once and set the engine's log level.

	Handlers are only installed when the root logger has none, so an
	embedding application (or pytest) keeps its own. The package logger
	level is always applied, which lets --debug take effect after modules
	have already created their loggers.
	"""
	if not logging.getLogger().handlers:
		logging.basicConfig(level=level, format=fmt or DEFAULT_FORMAT)
	logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	"""Return the logger for an engine module (the package logger by default)."""
	if not logging.getLogger().handlers:
		logging.basicConfig(level=logging.INFO, format=DEFAULT_FORMAT)
	return logging.getLogger(name or PACKAGE_LOGGER)


def log_exception(logger: logging.Logger, message: str = "An error occurred", exc_info: Exception = None) -> None:
	"""Log a failure as one error line; the traceback goes to debug.

	Args:
		logger: Logger instance to use
		message: What was being done when the failure happened
		exc_info: Exception instance (if None, uses current exception context)
	"""
	if exc_info is not None:
		logger.error(f"{message}: {type(exc_info).__name__}: {exc_info}")
	else:
		logger.error(message)
	logger.debug(f"Full traceback:\n{traceback.format_exc()}")
