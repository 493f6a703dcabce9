import math

from utils import haversine_km, mask_secret


def test_haversine_zero_for_same_point():
    assert haversine_km(40.0, -73.0, 40.0, -73.0) == 0.0


def test_haversine_symmetric():
    a = (47.6062, -122.3321)  # Seattle
    b = (45.5152, -122.6784)  # Portland
    assert math.isclose(haversine_km(*a, *b), haversine_km(*b, *a), rel_tol=1e-12)


def test_haversine_known_distances():
    # one degree of latitude is ~111.2 km on a 6371 km sphere
    assert math.isclose(haversine_km(0.0, 0.0, 1.0, 0.0), 111.195, abs_tol=0.01)
    # Seattle to Portland is roughly 234 km
    assert 230 < haversine_km(47.6062, -122.3321, 45.5152, -122.6784) < 238


def test_haversine_short_hop():
    d = haversine_km(40.0, -73.0, 40.01, -73.01)
    assert 1.3 < d < 1.5


def test_mask_secret():
    assert mask_secret(None) == "unset"
    assert mask_secret("short") == "*****"
    assert mask_secret("abcdefghijklmnop") == "abcd...mnop"
