"""Logger module for setting up a logger."""

import logging
import logging.handlers

LOG_FORMAT = (
    "%(asctime)s [%(levelname)s]: %(filename)s(%(funcName)s:%(lineno)s) >> %(message)s"
)
LOG_LEVEL = logging.INFO


def _setup_xgeoref_logger(
    level: int = LOG_LEVEL, force: bool = False
) -> logging.Logger:
    """Configures and returns the xgeoref package logger.

    Parameters
    ----------
    level : int
        Logging level for xgeoref (e.g., logging.DEBUG, logging.INFO).
    force : bool, optional
        If True, clears existing handlers before adding a new one.

    Returns
    -------
    logging.Logger
        The xgeoref package logger.
    """
    logger = logging.getLogger("xgeoref")

    if force:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False

    return logger


def _setup_custom_logger(name, propagate=True) -> logging.Logger:
    """Sets up a module logger below the ``xgeoref`` package logger.

    Parameters
    ----------
    name : str
        Name of the module where this function is called (``__name__``).
    propagate : bool, optional
        Whether to propagate logger messages or not, by default True.

    Returns
    -------
    logging.Logger
        The logger.

    Examples
    ---------
    Messages about a dataset that could not be fully georeferenced go through
    :class:`xgeoref.listeners.StoreListeners`, which falls back to this logger:

    >>> logger.warning("")

    Timing of localization grid computations:

    >>> logger.debug("")
    """
    logger = logging.getLogger(name)
    logger.propagate = propagate

    return logger
