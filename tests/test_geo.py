import itertools
from types import SimpleNamespace

from marketplace.services.geo import coordinates_of, distance_miles, has_coordinates

POINTS = [
    (39.10, -94.58),    # Kansas City
    (38.627, -90.1994),  # St. Louis
    (-33.8688, 151.2093),
    (0.0, 179.9),
    (0.0, -179.9),
]


def test_distance_to_self_is_zero():
    for p in POINTS:
        assert distance_miles(p, p) == 0


def test_distance_is_symmetric():
    for a, b in itertools.combinations(POINTS, 2):
        assert distance_miles(a, b) == distance_miles(b, a)


def test_one_degree_is_about_69_miles():
    assert distance_miles((0.0, 0.0), (1.0, 0.0)) == 69
    assert distance_miles((0.0, 0.0), (0.0, 1.0)) == 69


def test_kansas_city_to_st_louis():
    d = distance_miles(POINTS[0], POINTS[1])
    assert 235 <= d <= 240
    assert isinstance(d, int)


def test_crossing_the_antimeridian_takes_the_short_way():
    assert distance_miles((0.0, 179.9), (0.0, -179.9)) == 14


def test_coordinates_require_both_values():
    assert has_coordinates(SimpleNamespace(latitude=1.0, longitude=2.0))
    assert not has_coordinates(SimpleNamespace(latitude=None, longitude=2.0))
    assert not has_coordinates(SimpleNamespace(latitude=None, longitude=None))
    assert coordinates_of(SimpleNamespace(latitude=1.0, longitude=None)) is None
    assert coordinates_of(SimpleNamespace(latitude=1, longitude=2)) == (1.0, 2.0)
