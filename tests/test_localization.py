import numpy as np
import pytest

from xgeoref.localization import LocalizationGridBuilder, LocalizationGridError


class TestLocalizationGridBuilder:
    @pytest.fixture(autouse=True)
    def setup(self):
        self.builder = LocalizationGridBuilder(width=4, height=3)
        rows, columns = np.mgrid[0:3, 0:4]
        self.x = 100.0 + 2.0 * columns
        self.y = 40.0 - 1.5 * rows

    def test_requires_at_least_two_by_two_points(self):
        with pytest.raises(ValueError, match="at least 2×2"):
            LocalizationGridBuilder(width=1, height=5)

    def test_control_points_must_be_set(self):
        with pytest.raises(ValueError, match="have not been set"):
            self.builder.control_points

    def test_rejects_wrong_number_of_control_points(self):
        with pytest.raises(ValueError, match="Expected 12 control points"):
            self.builder.set_control_points(np.zeros(11), np.zeros(12))

    def test_fits_linear_grid_exactly(self):
        self.builder.set_control_points(self.x, self.y)

        tr = self.builder.create()

        np.testing.assert_allclose(
            tr.linear.matrix,
            [[2.0, 0.0, 100.0], [0.0, -1.5, 40.0], [0.0, 0.0, 1.0]],
            atol=1e-9,
        )
        np.testing.assert_allclose(tr.transform([3.0, 2.0]), [[106.0, 37.0]])
        assert self.builder.linearizer() is None

    def test_nan_control_points_raise_error(self):
        self.y[1, 1] = np.nan
        self.builder.set_control_points(self.x, self.y)

        with pytest.raises(LocalizationGridError, match="NaN"):
            self.builder.create()

    def test_resolves_antimeridian_crossing_along_rows(self):
        x = np.array([[170.0, 179.0, -172.0, -163.0]] * 3)
        self.builder.set_control_points(x, self.y)

        self.builder.resolve_wraparound_axis(0, direction=0, period=360.0)

        np.testing.assert_allclose(
            self.builder.control_points[0][0], [170.0, 179.0, 188.0, 197.0]
        )

    def test_resolves_crossing_between_rows(self):
        x = np.array([[179.0] * 4, [-179.0] * 4, [-177.0] * 4])
        self.builder.set_control_points(x, self.y)

        self.builder.resolve_wraparound_axis(0, direction=1, period=360.0)

        np.testing.assert_allclose(self.builder.control_points[0][:, 0], [179.0, 181.0, 183.0])

    def test_retains_most_linear_projection(self):
        self.builder.set_control_points(self.x, self.y)
        self.builder.add_linearizers(
            {
                "squared": lambda x, y: (x**2, y**2),
                "shifted": lambda x, y: (x + 1, y - 1),
            }
        )

        tr = self.builder.create()

        assert self.builder.linearizer() == "shifted"
        assert tr.linearizer == "shifted"
        np.testing.assert_allclose(tr.coordinates[0][0], [101.0, 103.0, 105.0, 107.0])

    def test_failing_projections_are_skipped(self):
        def fail(x, y):
            raise ValueError("outside of domain")

        self.builder.set_control_points(self.x, self.y)
        self.builder.add_linearizers({"fail": fail, "same": lambda x, y: (x, y)})

        self.builder.create()

        assert self.builder.linearizer() == "same"

    def test_raises_error_if_all_projections_fail(self):
        def fail(x, y):
            raise ValueError("outside of domain")

        self.builder.set_control_points(self.x, self.y)
        self.builder.add_linearizers({"fail": fail})

        with pytest.raises(LocalizationGridError, match="fail: outside of domain"):
            self.builder.create()
