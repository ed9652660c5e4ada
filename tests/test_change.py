"""Tests for change detection and the sample models."""
from datetime import datetime, timedelta, timezone

import pytest

from covidstats.parse.change import changed, changed_fields
from covidstats.parse.models import NUMERIC_FIELDS, PartialSample, Sample

BASE = {"primary_count": 120, "suspects": 5, "recovered": 40, "deaths": 3}
T0 = datetime(2020, 4, 1, 12, 0, tzinfo=timezone.utc)


def test_first_observation_always_changed():
    assert changed(None, PartialSample(**BASE)) is True
    assert changed(None, PartialSample()) is True


@pytest.mark.parametrize("field", NUMERIC_FIELDS)
def test_one_field_differs(field):
    previous = Sample.stamp(PartialSample(**BASE), T0, "angola")
    current = PartialSample(**{**BASE, field: BASE[field] + 1})

    assert changed(previous, current) is True
    assert changed_fields(previous, current) == [field]


@pytest.mark.parametrize("field", NUMERIC_FIELDS)
def test_value_versus_absent_differs(field):
    previous = Sample.stamp(PartialSample(**BASE), T0, "angola")
    current = PartialSample(**{**BASE, field: None})

    assert changed(previous, current) is True


def test_identical_numbers_ignore_timestamp_and_country():
    previous = Sample.stamp(PartialSample(**BASE), T0, "angola")
    other = Sample.stamp(PartialSample(**BASE), T0 + timedelta(days=3), "elsewhere")

    assert changed(previous, other) is False


def test_absent_equals_absent():
    previous = Sample.stamp(PartialSample(primary_count=1), T0, "angola")
    assert changed(previous, PartialSample(primary_count=1)) is False


def test_zero_differs_from_absent():
    previous = Sample.stamp(PartialSample(deaths=None), T0, "angola")
    assert changed(previous, PartialSample(deaths=0)) is True


def test_sample_row_uses_active_key():
    sample = Sample.stamp(PartialSample(**BASE), T0, "angola")
    row = sample.to_row()

    assert row["active"] == 120
    assert "primary_count" not in row
    assert row["country"] == "angola"
    assert row["timestamp"].startswith("2020-04-01T12:00:00")


def test_sample_from_legacy_row():
    """Rows written by the older page generation call the field 'confirmed'."""
    sample = Sample.from_row(
        {
            "confirmed": 8,
            "suspects": None,
            "recovered": 0,
            "deaths": 2,
            "timestamp": "2020-03-25T10:00:00",
            "country": "angola",
            "id": 17,
        }
    )

    assert sample.primary_count == 8
    assert sample.suspects is None
    assert sample.timestamp.tzinfo is not None


def test_missing_fields():
    assert PartialSample(suspects=1).missing_fields() == ["primary_count", "recovered", "deaths"]
