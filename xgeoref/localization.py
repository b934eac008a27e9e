"""
Localization module for fitting a transform to a two-dimensional grid of
control points, for example the "lat(y, x)" and "lon(y, x)" variables of a
curvilinear grid or a satellite swath.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from xgeoref.transform import AffineTransform, LocalizationGridTransform

#: A projection of control points. It receives and returns the two ordinates
#: as flat arrays.
Projection = Callable[[np.ndarray, np.ndarray], tuple[np.ndarray, np.ndarray]]


class LocalizationGridError(RuntimeError):
    """Raised when a localization grid can not be fitted.

    Parameters
    ----------
    message : str
        The error message.
    potential_cause : str | None
        A hint about why the fit failed, if one of the linearizers has one.
    """

    def __init__(self, message: str, potential_cause: str | None = None):
        super().__init__(message)
        self.potential_cause = potential_cause


@dataclass
class _Fit:
    name: str | None
    coordinates: np.ndarray
    linear: AffineTransform
    score: float


class LocalizationGridBuilder:
    """Builds a :class:`LocalizationGridTransform` from control points.

    Control points are given as flat vectors in row-major order: the column
    index varies fastest. If projections ("linearizers") are registered,
    each of them is applied to the control points and the one producing the
    most linear grid is retained.

    Parameters
    ----------
    width : int
        The number of columns.
    height : int
        The number of rows.
    """

    def __init__(self, width: int, height: int):
        if width < 2 or height < 2:
            raise ValueError(
                f"A localization grid requires at least 2×2 cells, got {width}×{height}."
            )

        self.width = width
        self.height = height
        self._coordinates: np.ndarray | None = None
        self._projections: dict[str, Projection] = {}
        self._linearizer: str | None = None

    @property
    def control_points(self) -> np.ndarray:
        """The control points as an array of shape ``(2, height, width)``."""
        if self._coordinates is None:
            raise ValueError("The control points have not been set.")

        return self._coordinates

    def set_control_points(self, x: np.ndarray, y: np.ndarray):
        """Sets the two ordinates of all control points.

        Raises
        ------
        ValueError
            If a vector length is not ``width × height``.
        """
        expected = self.width * self.height
        vectors = []
        for vector in (x, y):
            vector = np.asarray(vector, dtype=np.float64).ravel()
            if vector.size != expected:
                raise ValueError(
                    f"Expected {expected} control points, got {vector.size}."
                )
            vectors.append(vector.reshape(self.height, self.width))

        self._coordinates = np.stack(vectors)

    def resolve_wraparound_axis(self, dimension: int, direction: int, period: float):
        """Removes the discontinuities of a wraparound ordinate (longitude).

        Jumps larger than half a period between adjacent cells are removed by
        adding or subtracting multiples of the period, first along the given
        grid direction, then between the first cells of each row or column.

        Parameters
        ----------
        dimension : int
            The ordinate to unwrap: 0 for ``x``, 1 for ``y``.
        direction : int
            The grid direction in which the ordinate varies most: 0 for
            columns (along a row), 1 for rows.
        period : float
            The wraparound period, for example 360 for degrees.
        """
        grid = self.control_points[dimension]
        if not np.all(np.isfinite(grid)):
            return

        along = 1 if direction == 0 else 0
        grid = np.unwrap(grid, period=period, axis=along)
        first = grid.take(0, axis=along)
        shift = np.unwrap(first, period=period) - first
        self._coordinates[dimension] = grid + np.expand_dims(shift, axis=along)  # type: ignore[index]

    def add_linearizers(self, projections: dict[str, Projection]):
        """Registers candidate projections, keyed by name."""
        self._projections.update(projections)

    def linearizer(self) -> str | None:
        """The name of the projection retained by the last :meth:`create` call."""
        return self._linearizer

    def create(self) -> LocalizationGridTransform:
        """Fits the grid and returns the transform from grid indices.

        Raises
        ------
        LocalizationGridError
            If the control points (or all their projections) contain
            non-finite values.
        """
        coordinates = self.control_points

        if not self._projections:
            if not np.all(np.isfinite(coordinates)):
                raise LocalizationGridError(
                    "The localization grid contains NaN or infinite coordinates."
                )

            linear, _ = _fit_affine(coordinates)
            self._linearizer = None

            return LocalizationGridTransform(coordinates, linear)

        best: _Fit | None = None
        failures = []
        for name, projection in self._projections.items():
            try:
                x, y = projection(coordinates[0].ravel(), coordinates[1].ravel())
            except (ValueError, RuntimeError) as err:
                failures.append(f"{name}: {err}")
                continue

            projected = np.stack(
                [
                    np.asarray(x, dtype=np.float64).reshape(self.height, self.width),
                    np.asarray(y, dtype=np.float64).reshape(self.height, self.width),
                ]
            )
            if not np.all(np.isfinite(projected)):
                failures.append(f"{name}: the projection produced non-finite values")
                continue

            linear, score = _fit_affine(projected)
            if best is None or score > best.score:
                best = _Fit(name, projected, linear, score)

        if best is None:
            raise LocalizationGridError(
                "No linearizer can be applied on the localization grid ("
                + "; ".join(failures)
                + ")."
            )

        self._linearizer = best.name

        return LocalizationGridTransform(best.coordinates, best.linear, best.name)


def _fit_affine(coordinates: np.ndarray) -> tuple[AffineTransform, float]:
    """Fits a plane to each ordinate of a grid by least squares.

    Returns the affine transform from ``(column, row)`` indices and the mean
    coefficient of determination of the two planes (1 for a linear grid).
    """
    _, height, width = coordinates.shape
    rows, columns = np.mgrid[0:height, 0:width]
    design = np.column_stack(
        [columns.ravel(), rows.ravel(), np.ones(width * height)]
    ).astype(np.float64)

    matrix = np.zeros((3, 3))
    matrix[2, 2] = 1
    scores = []
    for dim in range(2):
        values = coordinates[dim].ravel()
        coefficients, *_ = np.linalg.lstsq(design, values, rcond=None)
        matrix[dim] = coefficients

        residuals = values - design @ coefficients
        total = np.sum((values - values.mean()) ** 2)
        scores.append(1.0 if total == 0 else 1.0 - np.sum(residuals**2) / total)

    return AffineTransform(matrix), float(np.mean(scores))
