"""Tests for climarisk.geometry and climarisk.interpolation."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from climarisk.exceptions import InvalidInput
from climarisk.geometry import bounding_box, distance, grid
from climarisk.interpolation import Sample, heatmap, interpolate
from climarisk.models import BoundingBox, Coordinate


coordinates = st.builds(
    Coordinate,
    lat=st.floats(min_value=-89.0, max_value=89.0),
    lon=st.floats(min_value=-179.0, max_value=179.0),
)

rounded_coordinates = st.builds(
    Coordinate,
    lat=st.floats(min_value=-60.0, max_value=60.0).map(lambda v: round(v, 3)),
    lon=st.floats(min_value=-60.0, max_value=60.0).map(lambda v: round(v, 3)),
)


# ==============================================================================
# Distance
# ==============================================================================

class TestDistance:
    """Tests for haversine distance."""

    def test_kigali_pair(self):
        """Two points west of Kigali are about 20.9 km apart."""
        a = Coordinate(lat=-1.9403, lon=29.8739)
        b = Coordinate(lat=-1.9441, lon=30.0619)
        assert distance(a, b) == pytest.approx(20.9, abs=0.5)

    def test_one_degree_of_latitude(self):
        """One degree along a meridian is about 111.2 km."""
        d = distance(Coordinate(lat=0, lon=0), Coordinate(lat=1, lon=0))
        assert d == pytest.approx(111.19, abs=0.05)

    def test_antipodal_points(self):
        """Antipodes are half the circumference apart."""
        d = distance(Coordinate(lat=0, lon=0), Coordinate(lat=0, lon=180))
        assert d == pytest.approx(20015.1, abs=1.0)

    @settings(max_examples=50)
    @given(coordinates, coordinates)
    def test_symmetric(self, a, b):
        """distance(a, b) == distance(b, a)."""
        assert distance(a, b) == pytest.approx(distance(b, a), abs=1e-9)

    @settings(max_examples=50)
    @given(coordinates)
    def test_zero_for_same_point(self, a):
        """A point is at distance 0 from itself."""
        assert distance(a, a) == 0.0

    @settings(max_examples=50)
    @given(coordinates, coordinates, coordinates)
    def test_triangle_inequality(self, a, b, c):
        """d(a, c) <= d(a, b) + d(b, c)."""
        assert distance(a, c) <= distance(a, b) + distance(b, c) + 1e-6


# ==============================================================================
# Bounding boxes and grids
# ==============================================================================

class TestBoundingBox:
    """Tests for bounding_box."""

    def test_equator_box_is_square_in_degrees(self):
        """At the equator both spans are radius / 111 degrees."""
        box = bounding_box(Coordinate(lat=0, lon=0), 111)

        assert box.north == pytest.approx(1.0)
        assert box.south == pytest.approx(-1.0)
        assert box.east == pytest.approx(1.0)
        assert box.west == pytest.approx(-1.0)

    def test_contains_center(self, kigali):
        """The centre lies inside its own box."""
        box = bounding_box(kigali, 25)
        assert box.contains(kigali)
        assert box.center.lat == pytest.approx(kigali.lat)

    def test_longitude_span_widens_with_latitude(self):
        """The same radius spans more longitude at 60 degrees."""
        equator = bounding_box(Coordinate(lat=0, lon=0), 50)
        north = bounding_box(Coordinate(lat=60, lon=0), 50)
        assert (north.east - north.west) == pytest.approx(2 * (equator.east - equator.west))

    def test_near_pole_is_clamped(self):
        """Boxes touching a pole are clamped to valid coordinates."""
        box = bounding_box(Coordinate(lat=89.9, lon=0), 100)
        assert box.north == 90.0
        assert -180.0 <= box.west < box.east <= 180.0

    @pytest.mark.parametrize("radius", [0, -5])
    def test_non_positive_radius_raises(self, kigali, radius):
        """Radius must be positive."""
        with pytest.raises(InvalidInput):
            bounding_box(kigali, radius)


class TestGrid:
    """Tests for grid."""

    def test_point_count_and_corners(self, small_bbox):
        """A grid of size n has (n + 1)^2 points including all corners."""
        points = grid(small_bbox, 4)

        assert len(points) == 25
        assert (points[0].lat, points[0].lon) == (small_bbox.south, small_bbox.west)
        assert (points[-1].lat, points[-1].lon) == (small_bbox.north, small_bbox.east)
        assert (points[4].lat, points[4].lon) == (small_bbox.south, small_bbox.east)
        assert (points[20].lat, points[20].lon) == (small_bbox.north, small_bbox.west)

    def test_row_major_from_south_west(self, small_bbox):
        """Longitude varies fastest, latitude increases by row."""
        points = grid(small_bbox, 2)
        assert points[1].lat == points[0].lat
        assert points[1].lon > points[0].lon
        assert points[3].lat > points[0].lat

    @settings(max_examples=30)
    @given(st.integers(min_value=1, max_value=12))
    def test_every_point_inside_bbox(self, n):
        """All grid points lie inside the box."""
        box = BoundingBox(north=10.0, south=-3.3, east=47.1, west=12.9)
        points = grid(box, n)
        assert len(points) == (n + 1) ** 2
        assert all(box.contains(p) for p in points)

    @pytest.mark.parametrize("size", [0, -1, 2.5, True])
    def test_invalid_grid_size_raises(self, small_bbox, size):
        """grid_size must be a positive integer."""
        with pytest.raises(InvalidInput):
            grid(small_bbox, size)


class TestBoundingBoxModel:
    """Tests for the BoundingBox model helpers."""

    def test_inverted_box_rejected(self):
        """north must exceed south."""
        with pytest.raises(ValueError):
            BoundingBox(north=-2.0, south=-1.8, east=30.2, west=30.0)

    def test_array_round_trip(self, small_bbox):
        """to_array and from_array use [west, south, east, north]."""
        assert small_bbox.to_array() == [30.0, -2.0, 30.2, -1.8]
        assert BoundingBox.from_array(small_bbox.to_array()) == small_bbox

    def test_polygon_is_closed(self, small_bbox):
        """The polygon ring ends where it starts."""
        ring = small_bbox.to_polygon()
        assert len(ring) == 5
        assert ring[0] == ring[-1]


# ==============================================================================
# Interpolation
# ==============================================================================

class TestInterpolate:
    """Tests for inverse distance weighting."""

    def test_no_samples_is_zero(self, kigali):
        """Without samples the estimate is 0."""
        assert interpolate(kigali, []) == 0.0

    def test_single_sample_is_returned(self, kigali):
        """One sample is returned whatever the distance."""
        far = Coordinate(lat=40.0, lon=-70.0)
        assert interpolate(kigali, [Sample(far, 0.42)]) == 0.42

    def test_exact_coincidence_returns_sample_verbatim(self):
        """A sample at the query point wins outright."""
        p = Coordinate(lat=0, lon=0)
        samples = [Sample(Coordinate(lat=1, lon=1), 99.0), Sample(p, 7.0)]
        assert interpolate(p, samples) == 7.0

    def test_midpoint_is_average(self):
        """Equidistant samples are weighted equally."""
        samples = [
            Sample(Coordinate(lat=0, lon=-1), 10.0),
            Sample(Coordinate(lat=0, lon=1), 20.0),
        ]
        assert interpolate(Coordinate(lat=0, lon=0), samples) == pytest.approx(15.0)

    def test_nearer_sample_dominates(self):
        """The estimate leans toward the closer sample."""
        samples = [
            Sample(Coordinate(lat=0, lon=0.1), 10.0),
            Sample(Coordinate(lat=0, lon=2.0), 20.0),
        ]
        value = interpolate(Coordinate(lat=0, lon=0), samples)
        assert 10.0 < value < 11.0

    @settings(max_examples=50)
    @given(
        st.lists(
            st.tuples(
                st.floats(min_value=-5, max_value=5).map(lambda v: round(v, 3)),
                st.floats(min_value=-5, max_value=5).map(lambda v: round(v, 3)),
                st.floats(min_value=0, max_value=1),
            ),
            min_size=2,
            max_size=6,
        ),
        rounded_coordinates,
    )
    def test_bounded_by_sample_values(self, raw, point):
        """IDW never leaves the range of the sample values."""
        samples = [Sample(Coordinate(lat=lat, lon=lon), v) for lat, lon, v in raw]
        values = [s.value for s in samples]
        estimate = interpolate(point, samples)
        assert min(values) - 1e-9 <= estimate <= max(values) + 1e-9


class TestHeatmap:
    """Tests for heatmap."""

    def test_cell_per_grid_point(self, small_bbox):
        """One cell per grid point, in grid order."""
        samples = [
            Sample(Coordinate(lat=-2.0, lon=30.0), 0.1),
            Sample(Coordinate(lat=-1.8, lon=30.2), 0.9),
        ]
        cells = heatmap(small_bbox, samples, 3)

        assert len(cells) == 16
        assert cells[0].value == pytest.approx(0.1)
        assert cells[-1].value == pytest.approx(0.9)
        assert all(0.1 <= c.value <= 0.9 for c in cells)
