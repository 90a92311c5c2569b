import numpy as np
import pytest

from samples import LaserRangeError, LaserScan


@pytest.fixture
def scan():
    """Three beams a quarter turn apart, one scan step per second."""
    return LaserScan(
        time=0.0,
        start_angle=0.0,
        angular_resolution=np.pi / 2,
        speed=np.pi / 2,
        ranges=[1000, 2000, 3000],
        min_range=100,
        max_range=5000,
        remission=[0.1, 0.2, 0.3],
    )


class FakePoseProvider:
    """Translates along x by the requested time, unknown after 1.5 s."""

    def __init__(self):
        self.calls = []

    def get(self, timestamp, allow_extrapolation):
        self.calls.append((timestamp, allow_extrapolation))
        if timestamp > 1.5:
            return None
        pose = np.eye(4)
        pose[0, 3] = timestamp
        return pose


class TestValidity:
    @pytest.mark.parametrize(
        "range_mm, expected",
        [
            (100, True),
            (5000, True),
            (99, False),
            (5001, False),
            (int(LaserRangeError.TOO_NEAR), False),
        ],
    )
    def test_range_bounds(self, scan, range_mm, expected):
        assert scan.is_range_valid(range_mm) is expected

    def test_error_codes_are_invalid_without_min_range(self, scan):
        scan.min_range = 0

        assert not scan.is_range_valid(int(LaserRangeError.MAX_RANGE_ERROR))
        assert scan.is_range_valid(int(LaserRangeError.END_LASER_RANGE_ERRORS))

    def test_beam_index_out_of_bounds(self, scan):
        with pytest.raises(IndexError):
            scan.is_valid_beam(3)
        with pytest.raises(IndexError):
            scan.is_valid_beam(-1)

    def test_invalid_beam_has_no_point(self, scan):
        scan.ranges[1] = int(LaserRangeError.TOO_FAR)

        assert not scan.is_valid_beam(1)
        assert scan.point_from_beam(1) is None


class TestPointCloud:
    def test_points_in_sensor_frame(self, scan):
        cloud = scan.convert_to_point_cloud()

        np.testing.assert_allclose(cloud, [[1, 0, 0], [0, 2, 0], [-3, 0, 0]], atol=1e-12)

    def test_invalid_beams_skipped(self, scan):
        scan.ranges[0] = 50

        cloud = scan.convert_to_point_cloud()

        assert cloud.shape == (2, 3)

    def test_invalid_beams_kept_as_nan(self, scan):
        scan.ranges[0] = 50

        cloud = scan.convert_to_point_cloud(skip_invalid_points=False)

        assert cloud.shape == (3, 3)
        assert np.all(np.isnan(cloud[0]))
        np.testing.assert_allclose(cloud[1:], [[0, 2, 0], [-3, 0, 0]], atol=1e-12)

    def test_transform_applied(self, scan):
        transform = np.eye(4)
        transform[:3, 3] = [1.0, 2.0, 3.0]

        cloud = scan.convert_to_point_cloud(transform)

        np.testing.assert_allclose(cloud, [[2, 2, 3], [1, 4, 3], [-2, 2, 3]], atol=1e-12)

    def test_empty_scan(self):
        cloud = LaserScan().convert_to_point_cloud()

        assert cloud.shape == (0, 3)


class TestInterpolatedPointCloud:
    def test_beam_time(self, scan):
        assert scan.beam_time(0, 10.0) == pytest.approx(10.0)
        assert scan.beam_time(2, 10.0) == pytest.approx(12.0)

    @pytest.mark.parametrize("angular_resolution, speed", [(0.0, np.pi / 2), (np.pi / 2, 0.0)])
    def test_beam_time_needs_rotation(self, scan, angular_resolution, speed):
        scan.angular_resolution = angular_resolution
        scan.speed = speed

        with pytest.raises(ValueError):
            scan.beam_time(1, 0.0)
        with pytest.raises(ValueError):
            scan.convert_to_point_cloud_interpolated(FakePoseProvider(), 0.0)

    def test_pose_per_beam(self, scan):
        provider = FakePoseProvider()

        cloud = scan.convert_to_point_cloud_interpolated(provider, 0.0)

        np.testing.assert_allclose(cloud, [[1, 0, 0], [1, 2, 0]], atol=1e-12)
        assert [extrapolate for _, extrapolate in provider.calls] == [False, False, False]
        assert [t for t, _ in provider.calls] == pytest.approx([0.0, 1.0, 2.0])

    def test_missing_pose_kept_as_nan(self, scan):
        cloud = scan.convert_to_point_cloud_interpolated(FakePoseProvider(), 0.0,
                                                         skip_invalid_points=False)

        assert cloud.shape == (3, 3)
        assert np.all(np.isnan(cloud[2]))

    def test_invalid_beam_not_queried(self, scan):
        scan.ranges[2] = 6000
        provider = FakePoseProvider()

        scan.convert_to_point_cloud_interpolated(provider, 0.0)

        assert len(provider.calls) == 2


def test_reset(scan):
    scan.reset()

    assert scan.ranges == []
    assert scan.remission == []
    assert scan.speed == 0.0
    assert scan.min_range == 0 and scan.max_range == 0
