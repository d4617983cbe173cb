import pytest

from taxonomy_import.values import (
    GeoPoint, as_geopoint, decode_value, encode_value, values_differ,
)


@pytest.mark.parametrize("raw", [
    GeoPoint(43.7, -79.4),
    {"lat": 43.7, "lng": -79.4},
    {"lat": "43.7", "lng": " -79.4 "},
    "43.7,-79.4",
])
def test_as_geopoint_accepts_pairs(raw):
    assert as_geopoint(raw) == GeoPoint(43.7, -79.4)


@pytest.mark.parametrize("raw", [
    None, "", "north", {"lat": "x", "lng": 1}, {"lat": 1}, {"lat": True, "lng": 2},
])
def test_as_geopoint_rejects_non_numeric(raw):
    assert as_geopoint(raw) is None


def test_geopoint_survives_storage():
    assert decode_value(encode_value(GeoPoint(1.5, -2.0))) == GeoPoint(1.5, -2.0)
    assert decode_value(encode_value("Toronto")) == "Toronto"
    assert decode_value(None) is None


def test_geolocation_comparison():
    current = GeoPoint(43.7, -79.4)
    assert not values_differ(current, GeoPoint(43.7, -79.4))
    assert not values_differ(current, {"lat": "43.7", "lng": "-79.4"})
    assert values_differ(current, GeoPoint(43.8, -79.4))
    assert values_differ(current, GeoPoint(43.7, -79.5))
    assert values_differ(None, GeoPoint(43.7, -79.4))


def test_scalar_comparison_is_loose():
    assert not values_differ(None, "")
    assert not values_differ("1.50", 1.5)
    assert not values_differ("York", "York")
    assert values_differ("York", "Peel")
    assert values_differ(None, "York")


@pytest.mark.parametrize("raw", [
    "nan,nan", "inf,1", {"lat": float("nan"), "lng": 1}, {"lat": 1, "lng": float("inf")},
    {"lat": "1_000", "lng": 2},
])
def test_as_geopoint_rejects_non_finite(raw):
    assert as_geopoint(raw) is None


def test_number_words_compare_as_text():
    assert values_differ("inf", "Infinity")
    assert values_differ("NaN", "nan")
    assert not values_differ("Nan", "Nan")
    assert values_differ("1_000", 1000)
    assert not values_differ(" 1e3 ", 1000)
    assert not values_differ(".5", 0.5)
