"""
Transform module with the minimal coordinate operations needed to express a
grid-to-CRS conversion: affine matrices, 1-D interpolations, localization
grids and their composition.

All transforms map arrays of points of shape ``(n, source_dimensions)`` to
arrays of shape ``(n, target_dimensions)``.
"""

from __future__ import annotations

import abc
from typing import Sequence

import numpy as np


class MathTransform(abc.ABC):
    """The base class for coordinate operations on grid indices."""

    @property
    @abc.abstractmethod
    def source_dimensions(self) -> int:
        """The number of dimensions of input points."""

    @property
    @abc.abstractmethod
    def target_dimensions(self) -> int:
        """The number of dimensions of output points."""

    @abc.abstractmethod
    def transform(self, points: np.ndarray) -> np.ndarray:
        """Transforms an array of points.

        Parameters
        ----------
        points : np.ndarray
            The points to transform, with shape ``(n, source_dimensions)``.

        Returns
        -------
        np.ndarray
            The transformed points, with shape ``(n, target_dimensions)``.
        """

    @property
    def is_affine(self) -> bool:
        return False

    def _as_points(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            points = points.reshape(1, -1)

        if points.shape[1] != self.source_dimensions:
            raise ValueError(
                f"Expected points with {self.source_dimensions} dimensions, got "
                f"{points.shape[1]}."
            )

        return points


class AffineTransform(MathTransform):
    """A linear transform defined by a matrix in homogeneous coordinates.

    Parameters
    ----------
    matrix : np.ndarray
        A matrix of shape ``(target + 1, source + 1)`` whose last row is
        ``[0, ..., 0, 1]``.
    """

    def __init__(self, matrix: np.ndarray):
        matrix = np.array(matrix, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[0] < 1 or matrix.shape[1] < 1:
            raise ValueError(f"Invalid affine matrix shape: {matrix.shape}.")

        self.matrix = matrix

    @classmethod
    def scale(cls, factors: Sequence[float]) -> AffineTransform:
        """Creates a transform which multiplies each ordinate by a factor."""
        return cls(np.diag([*factors, 1.0]))

    @classmethod
    def identity(cls, dimension: int) -> AffineTransform:
        return cls(np.identity(dimension + 1))

    @property
    def source_dimensions(self) -> int:
        return self.matrix.shape[1] - 1

    @property
    def target_dimensions(self) -> int:
        return self.matrix.shape[0] - 1

    @property
    def is_affine(self) -> bool:
        return True

    @property
    def is_identity(self) -> bool:
        return self.matrix.shape[0] == self.matrix.shape[1] and bool(
            np.array_equal(self.matrix, np.identity(self.matrix.shape[0]))
        )

    def transform(self, points: np.ndarray) -> np.ndarray:
        points = self._as_points(points)

        return points @ self.matrix[:-1, :-1].T + self.matrix[:-1, -1]

    def __eq__(self, other) -> bool:
        return isinstance(other, AffineTransform) and np.array_equal(
            self.matrix, other.matrix
        )

    def __repr__(self) -> str:
        return f"AffineTransform({self.matrix.tolist()})"


class Interpolation1D(MathTransform):
    """Maps grid indices to the coordinate values of an irregular 1-D axis.

    Fractional indices are interpolated linearly and indices outside the
    ``[0, n-1]`` range are extrapolated from the first or last two values.
    """

    def __init__(self, values: np.ndarray):
        values = np.asarray(values, dtype=np.float64).ravel()
        if values.size < 2:
            raise ValueError("An interpolation requires at least two values.")

        self.values = values

    @property
    def source_dimensions(self) -> int:
        return 1

    @property
    def target_dimensions(self) -> int:
        return 1

    def transform(self, points: np.ndarray) -> np.ndarray:
        index = self._as_points(points)[:, 0]
        last = self.values.size - 1
        lower = np.clip(np.floor(index), 0, last - 1).astype(np.intp)
        fraction = index - lower
        result = self.values[lower] + fraction * (
            self.values[lower + 1] - self.values[lower]
        )

        return result.reshape(-1, 1)


class LocalizationGridTransform(MathTransform):
    """Bilinear interpolation in a 2-D grid of control points.

    Parameters
    ----------
    coordinates : np.ndarray
        The target coordinates at each grid cell, with shape
        ``(2, height, width)``. Input points are ``(column, row)`` indices.
    linear : AffineTransform
        The affine transform that best approximates this grid.
    linearizer : str | None
        The name of the projection applied to the coordinates before they
        were stored in this grid, if any.
    """

    def __init__(
        self,
        coordinates: np.ndarray,
        linear: AffineTransform,
        linearizer: str | None = None,
    ):
        coordinates = np.asarray(coordinates, dtype=np.float64)
        if coordinates.ndim != 3 or coordinates.shape[0] != 2:
            raise ValueError(
                f"Expected coordinates of shape (2, height, width), got "
                f"{coordinates.shape}."
            )

        self.coordinates = coordinates
        self.linear = linear
        self.linearizer = linearizer

    @property
    def width(self) -> int:
        return self.coordinates.shape[2]

    @property
    def height(self) -> int:
        return self.coordinates.shape[1]

    @property
    def source_dimensions(self) -> int:
        return 2

    @property
    def target_dimensions(self) -> int:
        return 2

    def transform(self, points: np.ndarray) -> np.ndarray:
        points = self._as_points(points)
        columns, rows = points[:, 0], points[:, 1]
        x0 = np.clip(np.floor(columns), 0, max(self.width - 2, 0)).astype(np.intp)
        y0 = np.clip(np.floor(rows), 0, max(self.height - 2, 0)).astype(np.intp)
        x1 = np.minimum(x0 + 1, self.width - 1)
        y1 = np.minimum(y0 + 1, self.height - 1)
        fx = columns - x0
        fy = rows - y0

        grid = self.coordinates
        result = (
            grid[:, y0, x0] * (1 - fx) * (1 - fy)
            + grid[:, y0, x1] * fx * (1 - fy)
            + grid[:, y1, x0] * (1 - fx) * fy
            + grid[:, y1, x1] * fx * fy
        )

        return result.T


class PassThroughTransform(MathTransform):
    """Applies a sub-transform on a contiguous range of dimensions.

    Dimensions before ``first_affected`` and the ``num_trailing`` last
    dimensions are copied unchanged.
    """

    def __init__(self, first_affected: int, sub_transform: MathTransform, num_trailing: int):
        if first_affected < 0 or num_trailing < 0:
            raise ValueError("Dimension counts must be non-negative.")

        self.first_affected = first_affected
        self.sub_transform = sub_transform
        self.num_trailing = num_trailing

    @property
    def source_dimensions(self) -> int:
        return (
            self.first_affected + self.sub_transform.source_dimensions + self.num_trailing
        )

    @property
    def target_dimensions(self) -> int:
        return (
            self.first_affected + self.sub_transform.target_dimensions + self.num_trailing
        )

    def transform(self, points: np.ndarray) -> np.ndarray:
        points = self._as_points(points)
        end = self.first_affected + self.sub_transform.source_dimensions
        middle = self.sub_transform.transform(points[:, self.first_affected : end])

        return np.hstack([points[:, : self.first_affected], middle, points[:, end:]])


class ConcatenatedTransform(MathTransform):
    """A sequence of transforms applied in order."""

    def __init__(self, steps: Sequence[MathTransform]):
        self.steps = tuple(steps)

    @property
    def source_dimensions(self) -> int:
        return self.steps[0].source_dimensions

    @property
    def target_dimensions(self) -> int:
        return self.steps[-1].target_dimensions

    def transform(self, points: np.ndarray) -> np.ndarray:
        points = self._as_points(points)
        for step in self.steps:
            points = step.transform(points)

        return points


def concatenate(*transforms: MathTransform) -> MathTransform:
    """Concatenates transforms, merging consecutive affine steps.

    Raises
    ------
    ValueError
        If the dimensions of consecutive transforms do not match.
    """
    steps: list[MathTransform] = []
    for tr in transforms:
        if steps and steps[-1].target_dimensions != tr.source_dimensions:
            raise ValueError(
                f"Can not concatenate a transform with {steps[-1].target_dimensions} "
                f"output dimensions and a transform with {tr.source_dimensions} "
                "input dimensions."
            )

        if isinstance(tr, ConcatenatedTransform):
            candidates = list(tr.steps)
        else:
            candidates = [tr]

        for step in candidates:
            if steps and isinstance(steps[-1], AffineTransform) and isinstance(
                step, AffineTransform
            ):
                steps[-1] = AffineTransform(step.matrix @ steps[-1].matrix)
            else:
                steps.append(step)

    if not steps:
        raise ValueError("At least one transform is required.")

    if len(steps) == 1:
        return steps[0]

    return ConcatenatedTransform(steps)
