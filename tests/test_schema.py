from datetime import datetime, UTC

import pytest

from pipelines.model import CityMetric
from scoring.model import MetricInput


def test_city_metric_serialization_roundtrip():
    payload = {
        "source": "world_bank",
        "city_slug": "austin",
        "city_name": " Austin ",
        "observed_at": datetime(2023, 1, 1),
        "metric": "gdp_per_capita",
        "value": 81695,
        "unit": "USD",
        "raw_payload": {"indicator": {"id": "NY.GDP.PCAP.CD"}, "date": "2023"},
    }

    metric = CityMetric(**payload)

    assert metric.value == pytest.approx(81695.0)
    assert metric.city_name == "Austin"
    assert metric.observed_at.isoformat() == "2023-01-01T00:00:00"
    assert metric.loaded_at.tzinfo is not None
    assert metric.is_scoring_input

    serialized = metric.model_dump()
    assert serialized["metric"] == "gdp_per_capita"
    assert isinstance(serialized["raw_payload"], dict)


def test_city_metric_requires_numeric_value():
    with pytest.raises(ValueError):
        CityMetric(
            source="openaq",
            city_slug="boston",
            city_name="Boston",
            observed_at=datetime.now(UTC),
            metric="air_quality_index",
            value="not-a-number",
            unit="AQI",
        )


def test_unknown_metric_is_not_a_scoring_input():
    metric = CityMetric(
        source="catalog",
        city_slug="boston",
        city_name="Boston",
        observed_at=datetime.now(UTC),
        metric="median_rent",
        value=2400,
        unit="USD",
    )

    assert not metric.is_scoring_input


def test_metric_input_accepts_camel_case_and_field_names():
    from_wire = MetricInput.model_validate({"gdpPerCapita": 85000, "costOfLivingIndex": 158})
    from_python = MetricInput(gdp_per_capita=85000, cost_of_living_index=158)

    assert from_wire == from_python
    assert from_wire.present_fields() == ["gdp_per_capita", "cost_of_living_index"]
    assert len(from_wire.missing_display_names()) == 5


@pytest.mark.parametrize("bad_value", ["abc", float("nan"), float("inf")])
def test_metric_input_rejects_malformed_values(bad_value):
    with pytest.raises(ValueError):
        MetricInput(unemployment_rate=bad_value)


def test_metric_input_is_immutable():
    metrics = MetricInput(population=500_000)

    with pytest.raises(ValueError):
        metrics.population = 1
