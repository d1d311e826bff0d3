from __future__ import annotations

import math

import pytest

from refugeemap.demographics import AGE_BANDS, bar_fraction, normalize_demographics_payload, reshape_demographics
from refugeemap.errors import SchemaError


def _combined_row(**values: int) -> dict[str, int]:
    return dict(values)


def test_combined_rows_are_summed_per_band():
    rows = [
        _combined_row(f_0_4=10, f_5_11=20, f_12_17=30, f_18_59=40, f_60=5, m_0_4=11, m_5_11=21, m_12_17=31, m_18_59=41, m_60=6),
        _combined_row(f_0_4=1, m_0_4=2),
    ]

    pyramid = reshape_demographics(rows)

    assert [b.age_band for b in pyramid.bands] == ["0-4", "5-11", "12-17", "18-59", "60+"]
    assert pyramid.bands[0].female_count == 11
    assert pyramid.bands[0].male_count == 13
    assert pyramid.bands[3].male_count == 41
    assert pyramid.scale_max == 41


def test_sex_tagged_rows():
    rows = [
        {"sex": "F", "0_4": 100, "60": 7},
        {"sex": "M", "0_4": 90, "18_59": 300},
    ]

    pyramid = reshape_demographics(rows)

    by_band = {b.age_band: b for b in pyramid.bands}
    assert by_band["0-4"].female_count == 100
    assert by_band["0-4"].male_count == 90
    assert by_band["18-59"].female_count == 0
    assert by_band["18-59"].male_count == 300
    assert by_band["60+"].female_count == 7
    assert pyramid.scale_max == 300


def test_missing_sex_row_defaults_to_zero():
    pyramid = reshape_demographics([{"sex": "F", "f_12_17": 4}])
    assert len(pyramid.bands) == len(AGE_BANDS)
    assert all(b.male_count == 0 for b in pyramid.bands)
    assert pyramid.bands[2].female_count == 4


def test_bad_values_become_zero_not_nan():
    rows = [{"f_0_4": None, "m_0_4": float("nan"), "f_5_11": "12", "m_5_11": "n/a", "f_60": -3}]

    pyramid = reshape_demographics(rows)

    for band in pyramid.bands:
        assert isinstance(band.female_count, int)
        assert isinstance(band.male_count, int)
        assert band.female_count >= 0 and band.male_count >= 0
    assert pyramid.bands[1].female_count == 12
    assert pyramid.scale_max == 12


def test_empty_input():
    pyramid = reshape_demographics([])
    assert pyramid.bands == ()
    assert pyramid.scale_max == 0
    assert pyramid.is_empty


def test_all_zero_rows_still_have_five_bands():
    pyramid = reshape_demographics([{}])
    assert len(pyramid.bands) == 5
    assert pyramid.scale_max == 0


def test_bar_fraction_handles_zero_scale():
    assert bar_fraction(0, 0) == 0.0
    assert bar_fraction(5, 0) == 0.0
    assert bar_fraction(5, 10) == 0.5
    assert not math.isnan(bar_fraction(0, 0))


def test_payload_shape_is_validated():
    pyramid = normalize_demographics_payload(
        {"items": [{"f_0_4": 3, "m_0_4": 4}], "totalRows": 1},
        year=2024,
        origin_code="SYR",
    )
    assert pyramid.scale_max == 4

    with pytest.raises(SchemaError):
        normalize_demographics_payload({"totalRows": 0}, year=2024, origin_code="SYR")
