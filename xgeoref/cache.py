"""
Cache module for fitted localization grids.

Fitting a localization grid is expensive, and the same coordinate variables
are typically used by many data variables of a file, or by many files of a
time series. Fitted grids are therefore cached at two levels:

* locally in each :class:`xgeoref.decoder.Decoder`, keyed by the identity of
  the axis objects (:class:`GridCacheKey`);
* globally in a process-wide :class:`GridCache`, keyed by the axis names and
  a digest of the coordinate values (:class:`GlobalGridCacheKey`). Values are
  held by weak references, so a grid is kept only as long as some dataset
  uses it.
"""

from __future__ import annotations

import hashlib
import threading
import weakref
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator

import numpy as np
import pyproj

from xgeoref.localization import LocalizationGridBuilder
from xgeoref.transform import LocalizationGridTransform

if TYPE_CHECKING:
    from xgeoref.decoder import Decoder
    from xgeoref.grid import Axis
    from xgeoref.linearizer import Linearizer

#: Size in bytes of the buffer through which coordinate values are digested.
BUFFER_SIZE = 8192


class GridCacheKey:
    """The key of a localization grid in the cache of a decoder.

    Two keys are equal if they have the same size and the very same axis
    objects.

    Parameters
    ----------
    width : int
        The number of grid columns.
    height : int
        The number of grid rows.
    x_axis : Axis
        The axis providing the first ordinate of control points.
    y_axis : Axis
        The axis providing the second ordinate of control points.
    """

    __slots__ = ("width", "height", "x_axis", "y_axis")

    def __init__(self, width: int, height: int, x_axis: Axis, y_axis: Axis):
        self.width = width
        self.height = height
        self.x_axis = x_axis
        self.y_axis = y_axis

    def __eq__(self, other) -> bool:
        return (
            type(other) is GridCacheKey
            and self.width == other.width
            and self.height == other.height
            and self.x_axis is other.x_axis
            and self.y_axis is other.y_axis
        )

    def __hash__(self) -> int:
        return hash((self.width, self.height, id(self.x_axis), id(self.y_axis)))

    def __repr__(self) -> str:
        return (
            f"GridCacheKey({self.width}×{self.height}, "
            f"{self.x_axis.name!r}, {self.y_axis.name!r})"
        )

    def cached(self, decoder: Decoder) -> GridCacheValue | None:
        """Returns the value cached in the decoder for this key, if any."""
        return decoder.local_grid_cache.get(self)

    def cache(self, decoder: Decoder, value: GridCacheValue) -> GridCacheValue:
        """Caches a value in the decoder unless a value is already present.

        Returns
        -------
        GridCacheValue
            The value in the cache after this call.
        """
        return decoder.local_grid_cache.setdefault(self, value)


class GlobalGridCacheKey:
    """The key of a localization grid in the process-wide cache.

    The key holds only the axis names and an MD5 digest of the coordinate
    values, never the values themselves.

    Parameters
    ----------
    local : GridCacheKey
        The local key giving the grid size and axis names.
    x_values : np.ndarray
        The values of the first axis.
    y_values : np.ndarray
        The values of the second axis.
    linearizers : Iterable[Linearizer]
        The linearizers that will be tried on the grid.

    Raises
    ------
    NotImplementedError
        If the MD5 algorithm is not available in this Python build.
    """

    __slots__ = ("width", "height", "x_name", "y_name", "digest", "linearizers")

    def __init__(
        self,
        local: GridCacheKey,
        x_values: np.ndarray,
        y_values: np.ndarray,
        linearizers: Iterable[Linearizer] = (),
    ):
        self.width = local.width
        self.height = local.height
        self.x_name = local.x_axis.name
        self.y_name = local.y_axis.name
        self.digest = digest(x_values, y_values)
        self.linearizers = frozenset(linearizer.type for linearizer in linearizers)

    def _identity(self) -> tuple:
        return (
            self.width,
            self.height,
            self.x_name,
            self.y_name,
            self.digest,
            self.linearizers,
        )

    def __eq__(self, other) -> bool:
        return type(other) is GlobalGridCacheKey and self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __repr__(self) -> str:
        return (
            f"GlobalGridCacheKey({self.width}×{self.height}, {self.x_name!r}, "
            f"{self.y_name!r}, {self.digest.hex()})"
        )


def digest(*vectors: np.ndarray) -> bytes:
    """Computes the MD5 digest of the values of the given vectors.

    Values are converted to big-endian float64 through a fixed-size buffer,
    so the digest does not depend on the platform or the stored data type.

    Raises
    ------
    NotImplementedError
        If the MD5 algorithm is not available.
    """
    try:
        md5 = hashlib.md5(usedforsecurity=False)
    except ValueError as err:
        raise NotImplementedError("The MD5 digest algorithm is not available.") from err

    step = BUFFER_SIZE // 8
    for vector in vectors:
        flat = np.asarray(vector).ravel()
        md5.update(np.array(flat.size, dtype=">i8").tobytes())
        for start in range(0, flat.size, step):
            chunk = np.ascontiguousarray(flat[start : start + step], dtype=">f8")
            md5.update(chunk.tobytes())

    return md5.digest()


class GridCacheValue:
    """A fitted localization grid, with the linearizer that was applied.

    Parameters
    ----------
    linearizers : Iterable[Linearizer]
        The linearizers registered on the builder.
    builder : LocalizationGridBuilder
        The builder with control points set.

    Raises
    ------
    LocalizationGridError
        If the grid can not be fitted.
    """

    def __init__(
        self, linearizers: Iterable[Linearizer], builder: LocalizationGridBuilder
    ):
        self.grid_to_crs: LocalizationGridTransform = builder.create()
        #: The projected CRS of the grid outputs, or None if not projected.
        self.linearization_target: pyproj.CRS | None = None
        #: Whether the grid axes are in (longitude, latitude) order, opposite
        #: to the (latitude, longitude) order consumed by the projection.
        self.axis_swap = False

        chosen = builder.linearizer()
        for linearizer in linearizers:
            if linearizer.type.value == chosen:
                self.linearization_target = linearizer.target_crs
                self.axis_swap = linearizer.axis_swap
                break

    def __repr__(self) -> str:
        target = None if self.linearization_target is None else self.linearization_target.name
        return f"GridCacheValue(target={target!r}, axis_swap={self.axis_swap})"


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class CacheHandler:
    """Gives access to the cache entry of a key locked by :meth:`GridCache.lock`."""

    def __init__(self, cache: GridCache, key: Any):
        self._cache = cache
        self._key = key

    def peek(self) -> GridCacheValue | None:
        """Returns the cached value, or None if it must be computed."""
        return self._cache.get(self._key)

    def put(self, value: GridCacheValue | None):
        """Stores the computed value, unless it is None or a value exists."""
        if value is not None:
            self._cache._put_if_absent(self._key, value)


class GridCache:
    """A thread-safe cache of fitted localization grids.

    Each key is computed at most once at a time: concurrent requests for the
    same key wait for the first one, then see its result. Values are weakly
    referenced.
    """

    def __init__(self):
        self._values: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._locks: dict[Any, _KeyLock] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._values)

    def get(self, key) -> GridCacheValue | None:
        with self._guard:
            return self._values.get(key)

    def _put_if_absent(self, key, value: GridCacheValue):
        with self._guard:
            if self._values.get(key) is None:
                self._values[key] = value

    def clear(self):
        with self._guard:
            self._values.clear()

    @contextmanager
    def lock(self, key) -> Iterator[CacheHandler]:
        """Locks a key until the end of the ``with`` block.

        Examples
        --------
        >>> with cache.lock(key) as handler:
        ...     value = handler.peek()
        ...     if value is None:
        ...         value = compute()
        ...         handler.put(value)
        """
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyLock()
            entry.users += 1

        entry.lock.acquire()
        try:
            yield CacheHandler(self, key)
        finally:
            entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    def get_or_compute(
        self, key, compute: Callable[[], GridCacheValue | None]
    ) -> GridCacheValue | None:
        """Returns the cached value, computing and caching it if needed.

        If ``compute`` raises, nothing is cached and the exception propagates.
        """
        with self.lock(key) as handler:
            value = handler.peek()
            if value is None:
                value = compute()
                handler.put(value)

        return value


#: The grid cache shared by all decoders which are not given their own.
SHARED_GRID_CACHE = GridCache()
