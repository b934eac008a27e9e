import numpy as np
import pytest

from xgeoref.transform import (
    AffineTransform,
    ConcatenatedTransform,
    Interpolation1D,
    LocalizationGridTransform,
    PassThroughTransform,
    concatenate,
)


class TestAffineTransform:
    def test_transform(self):
        tr = AffineTransform([[2.0, 0.0, 10.0], [0.0, -1.0, 5.0], [0.0, 0.0, 1.0]])

        result = tr.transform(np.array([[1.0, 2.0], [0.0, 0.0]]))

        np.testing.assert_allclose(result, [[12.0, 3.0], [10.0, 5.0]])

    def test_non_square_matrix(self):
        # Two grid dimensions to three CRS dimensions, the last one constant.
        tr = AffineTransform(
            [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 7.0], [0.0, 0.0, 1.0]]
        )

        assert tr.source_dimensions == 2
        assert tr.target_dimensions == 3
        np.testing.assert_allclose(tr.transform([3.0, 4.0]), [[3.0, 4.0, 7.0]])

    def test_identity_and_scale(self):
        assert AffineTransform.identity(3).is_identity
        assert not AffineTransform.scale([2.0, 1.0]).is_identity

    def test_raises_error_if_points_have_wrong_dimension(self):
        with pytest.raises(ValueError, match="Expected points with 2 dimensions"):
            AffineTransform.identity(2).transform(np.zeros((1, 3)))


class TestInterpolation1D:
    def test_interpolates_and_extrapolates(self):
        tr = Interpolation1D([0.0, 10.0, 30.0])

        result = tr.transform(np.array([[0.0], [1.5], [2.0], [3.0], [-1.0]]))

        np.testing.assert_allclose(result.ravel(), [0.0, 20.0, 30.0, 50.0, -10.0])

    def test_requires_two_values(self):
        with pytest.raises(ValueError, match="at least two values"):
            Interpolation1D([1.0])


class TestLocalizationGridTransform:
    def test_bilinear_interpolation(self):
        columns, rows = np.meshgrid(np.arange(3.0), np.arange(2.0))
        coordinates = np.stack([columns * 10, rows * 5 + 1])
        tr = LocalizationGridTransform(coordinates, AffineTransform.identity(2))

        result = tr.transform(np.array([[0.5, 0.5], [2.0, 1.0]]))

        assert (tr.width, tr.height) == (3, 2)
        np.testing.assert_allclose(result, [[5.0, 3.5], [20.0, 6.0]])

    def test_rejects_invalid_shape(self):
        with pytest.raises(ValueError, match="shape"):
            LocalizationGridTransform(np.zeros((3, 2, 2)), AffineTransform.identity(2))


class TestComposition:
    def test_pass_through_affects_middle_dimensions(self):
        tr = PassThroughTransform(1, AffineTransform.scale([2.0]), 1)

        result = tr.transform(np.array([[1.0, 2.0, 3.0]]))

        assert tr.source_dimensions == 3
        np.testing.assert_allclose(result, [[1.0, 4.0, 3.0]])

    def test_concatenate_merges_affine_steps(self):
        tr = concatenate(AffineTransform.scale([2.0]), AffineTransform.scale([3.0]))

        assert isinstance(tr, AffineTransform)
        np.testing.assert_allclose(tr.transform([1.0]), [[6.0]])

    def test_concatenate_keeps_non_linear_steps(self):
        tr = concatenate(
            PassThroughTransform(0, Interpolation1D([0.0, 1.0, 4.0]), 0),
            AffineTransform.scale([10.0]),
        )

        assert isinstance(tr, ConcatenatedTransform)
        np.testing.assert_allclose(tr.transform([2.0]), [[40.0]])

    def test_concatenate_raises_error_on_dimension_mismatch(self):
        with pytest.raises(ValueError, match="Can not concatenate"):
            concatenate(AffineTransform.identity(2), AffineTransform.identity(3))
