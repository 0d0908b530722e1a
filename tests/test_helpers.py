import math

import pytest

from polerecon.helpers import (
    coord_from_geojson, first_scalar, first_some, first_value, haversine_m,
    normalize_number, normalize_pole_num, normalize_scid, to_feet,
)


@pytest.mark.parametrize("raw, expected", [
    (" 123 ", "123"),
    ("007", "007"),
    (7, "7"),
    ("12a", None),
    ("PL123", None),
    ("1 2", None),
    ("", None),
    ("   ", None),
    (None, None),
    (True, None),
])
def test_normalize_scid(raw, expected):
    assert normalize_scid(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("PL-00412", "412"),
    ("1-PL28462", "128462"),
    (28462, "28462"),
    ("000", "0"),
    ("PL-" + "0" * 3 + "7" * 5000, "7" * 5000),
    ("abc", None),
    ("", None),
    (None, None),
])
def test_normalize_pole_num(raw, expected):
    assert normalize_pole_num(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    (40, 40),
    (62.5, 62.5),
    ("62.5%", 62.5),
    (" 7 % ", 7.0),
    ("12", 12.0),
    ("n/a", None),
    ("", None),
    (True, None),
    (float("nan"), None),
    ("1e400", None),
    (10 ** 400, None),
    ({"value": 1}, None),
])
def test_normalize_number(raw, expected):
    assert normalize_number(raw) == expected


class TestToFeet:
    def test_metre_object_uses_divisor(self):
        assert to_feet({"unit": "METRE", "value": 16.764}) == 55
        v = 12.5
        assert to_feet({"unit": "m", "value": v}) == round(v / 0.3048)

    def test_foot_object_rounds(self):
        assert to_feet({"unit": "FOOT", "value": 44.6}) == 45

    def test_object_without_numeric_value(self):
        assert to_feet({"unit": "METRE", "value": "tall"}) is None
        assert to_feet({"unit": "METRE"}) is None

    @pytest.mark.parametrize("feet", [35, 40, 45, 50, 120])
    def test_integer_feet_is_a_no_op(self, feet):
        assert to_feet(feet) == feet
        assert to_feet(float(feet)) == feet
        assert to_feet(to_feet(feet)) == feet

    def test_bare_numbers_in_metre_range_are_metres(self):
        assert to_feet(12.192) == 40
        # known limitation: a 20 ft pole stored as bare 20 reads as metres
        assert to_feet(20) == 66

    def test_metre_range_is_configurable(self):
        assert to_feet(20, metre_range=(0, 0)) == 20

    @pytest.mark.parametrize("raw, expected", [
        ("13.7m", 45),
        ("13.7 m", 45),
        ("45'", 45),
        ("45′", 45),
        ("45 ft", 45),
        ("45 feet", 45),
        ("40", 40),
        ("12.192", 40),
        ("15", 49),
    ])
    def test_strings(self, raw, expected):
        assert to_feet(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, "", "tall", "45-3", [], True, float("inf"),
        "9" * 400,
        "9" * 400 + "'",
        "9" * 400 + "m",
        10 ** 400,
        {"unit": "m", "value": 1e308},
        {"unit": "FOOT", "value": 10 ** 400},
    ], ids=repr)
    def test_unparseable_is_none(self, raw):
        assert to_feet(raw) is None


class TestKatapultAttributes:
    @pytest.mark.parametrize("attr, expected", [
        ("x", "x"),
        (5, 5),
        ({"-Imported": "5"}, "5"),
        ({"auto_button": "12"}, "12"),
        ({"button_added": "Power"}, "Power"),
        ({"tagtext": "PL1"}, "PL1"),
        ({"-Mpushid": "7"}, "7"),
        ({"-Imported": {"tagtext": "PL1"}}, {"tagtext": "PL1"}),
        ({}, None),
        (None, None),
        ([1, 2], None),
    ])
    def test_first_value(self, attr, expected):
        assert first_value(attr) == expected

    def test_first_scalar_rejects_nested(self):
        assert first_scalar({"-Imported": {"tagtext": "PL1"}}) is None
        assert first_scalar({"-Imported": 3}) == 3

    def test_first_some_takes_first_non_none(self):
        calls = []

        def nothing(v):
            calls.append("nothing")
            return None

        def double(v):
            calls.append("double")
            return v * 2

        def never(v):
            calls.append("never")
            return v

        assert first_some(4, (nothing, double, never)) == 8
        assert calls == ["nothing", "double"]
        assert first_some(4, ()) is None


class TestHaversine:
    def test_zero_for_same_point(self):
        p = (30.0, -95.0)
        assert haversine_m(p, p) == pytest.approx(0.0, abs=1e-9)

    def test_symmetric(self):
        a, b = (30.0, -95.0), (30.2, -95.3)
        assert haversine_m(a, b) == pytest.approx(haversine_m(b, a))

    def test_known_small_distance(self):
        d = haversine_m((30.0, -95.0), (30.0, -95.00001))
        assert 0.9 < d < 1.0

    def test_one_degree_latitude(self):
        expected = 6371000 * math.pi / 180
        assert haversine_m((0.0, 0.0), (1.0, 0.0)) == pytest.approx(expected)


def test_coord_from_geojson_swaps_to_lat_lon():
    assert coord_from_geojson({"coordinates": [-95.0, 30.0]}) == (30.0, -95.0)
    assert coord_from_geojson({"coordinates": [-95.0]}) is None
    assert coord_from_geojson({"coordinates": ["a", "b"]}) is None
    assert coord_from_geojson(None) is None
