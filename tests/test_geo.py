"""
Tests for geo.py - Distances, bearings and polygons.
"""

import pytest

from conftest import TEE, offset, square
from course_caddie.geo import (
    bearing_between,
    center_line_point,
    distance_to_segment_yards,
    haversine_yards,
    normalize_angle,
    point_in_polygon,
    polygon_centroid,
    project_point,
    shift_toward,
    to_local_yards,
)
from course_caddie.models import Coordinate


class TestHaversine:
    """Tests for great-circle distance."""

    def test_zero_for_identical_points(self):
        assert haversine_yards(TEE, TEE) == 0

    def test_symmetric(self):
        other = Coordinate(lat=33.004, lng=-116.997)
        assert haversine_yards(TEE, other) == haversine_yards(other, TEE)

    def test_returns_whole_yards(self):
        other = Coordinate(lat=33.001, lng=-117.0)
        assert isinstance(haversine_yards(TEE, other), int)

    def test_known_distance(self):
        """0.001 degrees of latitude is about 121.6 yards."""
        other = Coordinate(lat=33.001, lng=-117.0)
        assert haversine_yards(TEE, other) == 122


class TestProjection:
    """Tests for forward projection and bearings."""

    @pytest.mark.parametrize("bearing", [0, 45, 90, 180, 270, 333])
    def test_project_then_measure(self, bearing):
        point = project_point(TEE, bearing, 300)
        assert abs(haversine_yards(TEE, point) - 300) <= 1

    def test_bearing_due_north(self):
        north = Coordinate(lat=33.01, lng=-117.0)
        assert bearing_between(TEE, north) == pytest.approx(0.0, abs=1e-6)

    def test_bearing_due_east(self):
        east = project_point(TEE, 90, 200)
        assert bearing_between(TEE, east) == pytest.approx(90.0, abs=0.1)

    def test_bearing_range(self):
        west = project_point(TEE, 270, 200)
        assert 0 <= bearing_between(TEE, west) < 360
        assert bearing_between(TEE, west) == pytest.approx(270.0, abs=0.1)

    def test_shift_toward(self):
        pin = offset(TEE, north_yards=400)
        shifted = shift_toward(TEE, pin, 12)
        assert haversine_yards(TEE, shifted) == 12
        assert haversine_yards(shifted, pin) == 388


class TestPolygons:
    """Tests for point-in-polygon and centroids."""

    def test_point_inside_square(self):
        assert point_in_polygon(TEE, square(TEE, 10))

    def test_point_outside_square(self):
        assert not point_in_polygon(offset(TEE, east_yards=30), square(TEE, 10))

    def test_degenerate_polygon_contains_nothing(self):
        line = [offset(TEE, -10, 0), offset(TEE, 10, 0)]
        assert not point_in_polygon(TEE, line)
        assert not point_in_polygon(TEE, [])

    def test_centroid_is_vertex_mean(self):
        poly = [Coordinate(0, 0), Coordinate(0, 2), Coordinate(2, 2), Coordinate(2, 0)]
        c = polygon_centroid(poly)
        assert (c.lat, c.lng) == (1.0, 1.0)


class TestAngles:
    """Tests for angle normalization."""

    @pytest.mark.parametrize("angle,expected", [
        (0, 0), (190, -170), (-190, 170), (180, 180), (-180, 180), (540, 180), (359, -1),
    ])
    def test_normalize_angle(self, angle, expected):
        assert normalize_angle(angle) == pytest.approx(expected)


class TestCenterLine:
    """Tests for walking along a hole's center line."""

    def test_fallback_without_center_line(self):
        expected = project_point(TEE, 0, 250)
        point = center_line_point([], TEE, 250, 0)
        assert point.lat == pytest.approx(expected.lat)
        assert point.lng == pytest.approx(expected.lng)

    def test_interpolates_along_line(self):
        pin = offset(TEE, north_yards=400)
        point = center_line_point([TEE, pin], TEE, 250, 0)
        assert abs(haversine_yards(TEE, point) - 250) <= 1

    def test_dogleg_walks_both_segments(self):
        corner = offset(TEE, north_yards=200)
        green = offset(corner, east_yards=200)
        point = center_line_point([TEE, corner, green], TEE, 300, 0)
        assert abs(haversine_yards(corner, point) - 100) <= 1
        assert point.lng > corner.lng

    def test_extends_past_end(self):
        pin = offset(TEE, north_yards=100)
        point = center_line_point([TEE, pin], TEE, 150, 0)
        assert abs(haversine_yards(pin, point) - 50) <= 1


class TestSegmentDistance:
    """Tests for perpendicular distance to a segment."""

    def test_beside_segment(self):
        end = offset(TEE, north_yards=400)
        point = offset(TEE, east_yards=40, north_yards=200)
        assert distance_to_segment_yards(point, TEE, end) == pytest.approx(40, abs=0.5)

    def test_clamped_beyond_end(self):
        end = offset(TEE, north_yards=400)
        point = offset(TEE, north_yards=460)
        assert distance_to_segment_yards(point, TEE, end) == pytest.approx(60, abs=0.5)

    def test_zero_length_segment(self):
        point = offset(TEE, east_yards=30)
        assert distance_to_segment_yards(point, TEE, TEE) == pytest.approx(30, abs=0.5)


class TestLocalYards:
    """Tests for the local east/north plane."""

    def test_origin_is_zero(self):
        assert to_local_yards(TEE, TEE) == (0.0, 0.0)

    def test_axes(self):
        east, north = to_local_yards(TEE, offset(TEE, east_yards=-80, north_yards=120))
        assert east == pytest.approx(-80, abs=0.5)
        assert north == pytest.approx(120, abs=0.5)
