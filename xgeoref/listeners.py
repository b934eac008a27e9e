"""Listeners module for reporting non-fatal problems found while decoding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from xgeoref._logger import _setup_custom_logger

logger = _setup_custom_logger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    """A warning or informational message about a dataset.

    Attributes
    ----------
    level : int
        The ``logging`` level (``logging.WARNING`` or ``logging.INFO``).
    message : str
        The human readable message.
    source : str | None
        The file name or identifier of the dataset, if known.
    variable : str | None
        The name of the variable the message is about, if any.
    attribute : str | None
        The name of the malformed attribute, if any.
    value : Any
        The attribute value that could not be interpreted, if any.
    exception : BaseException | None
        The exception that caused the message, if any.
    """

    level: int
    message: str
    source: str | None = None
    variable: str | None = None
    attribute: str | None = None
    value: Any = None
    exception: BaseException | None = None

    def __str__(self) -> str:
        text = self.message
        if self.source is not None:
            text = f"{self.source}: {text}"
        if self.exception is not None:
            text = f"{text} ({type(self.exception).__name__}: {self.exception})"

        return text


class StoreListeners:
    """Routes the diagnostics of a dataset to registered callbacks.

    When no callback is registered, diagnostics are written to the
    ``xgeoref.listeners`` logger.

    Parameters
    ----------
    source : str | None
        The file name or identifier of the dataset, included in each
        diagnostic.
    """

    def __init__(self, source: str | None = None):
        self.source = source
        self._callbacks: list[Callable[[Diagnostic], None]] = []

    def add_listener(self, callback: Callable[[Diagnostic], None]):
        """Registers a callback invoked for every diagnostic."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def remove_listener(self, callback: Callable[[Diagnostic], None]):
        """Unregisters a previously registered callback.

        Raises
        ------
        KeyError
            If the callback was not registered.
        """
        try:
            self._callbacks.remove(callback)
        except ValueError as err:
            raise KeyError(f"{callback!r} is not a registered listener.") from err

    @property
    def has_listeners(self) -> bool:
        return len(self._callbacks) > 0

    def warning(
        self,
        message: str,
        exception: BaseException | None = None,
        variable: str | None = None,
        attribute: str | None = None,
        value: Any = None,
    ):
        """Reports a problem that prevents part of a dataset from being decoded."""
        self._fire(
            Diagnostic(
                logging.WARNING,
                message,
                self.source,
                variable,
                attribute,
                value,
                exception,
            )
        )

    def info(
        self,
        message: str,
        exception: BaseException | None = None,
        variable: str | None = None,
    ):
        """Reports a hint that may help understanding a previous warning."""
        self._fire(
            Diagnostic(
                logging.INFO,
                message,
                self.source,
                variable,
                exception=exception,
            )
        )

    def invalid_attribute(
        self,
        variable: str | None,
        attribute: str,
        value: Any,
        exception: BaseException | None = None,
    ):
        """Reports an attribute value which is ignored because it is malformed."""
        location = f"'{variable}'" if variable is not None else "the dataset"
        self.warning(
            f"The '{attribute}' attribute of {location} has an invalid value "
            f"({value!r}) and is ignored.",
            exception=exception,
            variable=variable,
            attribute=attribute,
            value=value,
        )

    def _fire(self, diagnostic: Diagnostic):
        if not self._callbacks:
            logger.log(diagnostic.level, str(diagnostic))
            return

        for callback in self._callbacks:
            callback(diagnostic)
