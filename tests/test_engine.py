from datetime import UTC, datetime, timedelta

import pytest

from scoring.engine import (
    compute,
    economy_score,
    growth_score,
    livability_score,
    overall_score,
    recency_factor,
    sustainability_score,
)
from scoring.model import MetricInput, Score, Tier

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)

FAVOURABLE = {
    "gdpPerCapita": 85_000,
    "unemploymentRate": 4.2,
    "airQualityIndex": 45,
    "population": 8_000_000,
    "populationGrowthRate": 1.1,
    "gdpGrowthRate": 3.0,
    "costOfLivingIndex": 158,
}


@pytest.fixture()
def favourable():
    return MetricInput.model_validate(FAVOURABLE)


def test_full_favourable_input(favourable):
    features = compute(favourable, NOW, city_slug="new-york", city_name="New York", now=NOW)

    for score in (
        features.economy,
        features.livability,
        features.sustainability,
        features.growth,
        features.overall,
    ):
        assert score.value is not None
        assert score.confidence == pytest.approx(1.0)

    assert features.economy.value == pytest.approx(77.2)
    assert features.economy.tier is Tier.GOOD
    assert features.livability.tier is Tier.GOOD
    assert features.sustainability.value == pytest.approx(85.0)
    assert features.sustainability.tier is Tier.EXCELLENT
    # the growth bands (-2..5 % population, -5..10 % GDP) put +1.1 % and +3 %
    # at about 48.8, so growth is average while the other scores are good or better
    assert features.growth.tier is Tier.AVERAGE
    assert features.overall.tier is Tier.GOOD

    assert features.data_completeness == pytest.approx(100.0)
    assert features.missing_data == ()
    assert features.is_stale is False
    assert features.confidence_score == pytest.approx(1.0)
    assert features.computation_date.isoformat() == "2025-06-01"
    assert features.has_all_scores()
    assert features.is_high_quality()


def test_overall_is_weighted_sum_of_sub_scores(favourable):
    features = compute(favourable, NOW, now=NOW)

    expected = (
        0.30 * features.economy.value
        + 0.35 * features.livability.value
        + 0.20 * features.sustainability.value
        + 0.15 * features.growth.value
    )
    assert features.overall.value == pytest.approx(expected)


def test_air_quality_only():
    metrics = MetricInput(air_quality_index=45)

    features = compute(metrics, NOW, now=NOW)

    assert features.sustainability.value == pytest.approx(85.0)
    assert features.sustainability.explanation == "Strong air quality (AQI 45)"
    assert features.economy.value is None
    assert features.livability.value is None
    assert features.growth.value is None
    assert features.overall.value == pytest.approx(0.20 * 85.0)
    assert features.overall.confidence == pytest.approx(0.20)
    assert len(features.missing_data) == 6
    assert "Air quality index" not in features.missing_data
    assert features.data_completeness == pytest.approx(100 / 7)


def test_stale_snapshot():
    metrics = MetricInput.model_validate(FAVOURABLE)

    features = compute(metrics, NOW - timedelta(hours=48), now=NOW)

    assert features.is_stale is True
    assert features.confidence_score == pytest.approx(0.85)


def test_stale_even_with_sparse_data():
    features = compute(MetricInput(population=500_000), NOW - timedelta(hours=48), now=NOW)

    assert features.is_stale is True


def test_compute_is_idempotent(favourable):
    as_of = NOW - timedelta(hours=3)

    first = compute(favourable, as_of, city_slug="austin", now=NOW)
    second = compute(favourable, as_of, city_slug="austin", now=NOW)

    assert first == second
    assert first.to_payload() == second.to_payload()


def test_naive_datetimes_are_utc(favourable):
    aware = compute(favourable, NOW, now=NOW)
    naive = compute(favourable, NOW.replace(tzinfo=None), now=NOW.replace(tzinfo=None))

    assert aware == naive


def test_all_inputs_absent():
    features = compute(MetricInput(), NOW, now=NOW)

    for score in (
        features.economy,
        features.livability,
        features.sustainability,
        features.growth,
        features.overall,
    ):
        assert score.value is None
        assert score.tier is Tier.UNAVAILABLE
        assert score.components == ()
        assert score.confidence == 0.0
    assert features.overall.explanation == "Overall score unavailable"
    assert features.data_completeness == 0.0
    assert len(features.missing_data) == 7
    assert features.missing_data[0] == "GDP per capita"
    assert features.confidence_score == 0.0
    assert not features.has_all_scores()


def test_overall_present_when_any_sub_score_present():
    unavailable = Score(value=None, explanation="unavailable")
    present = Score(value=50.0, explanation="present")

    assert overall_score(unavailable, unavailable, unavailable, unavailable).value is None
    assert overall_score(unavailable, unavailable, unavailable, present).value == pytest.approx(7.5)
    assert overall_score(present, unavailable, unavailable, unavailable).value == pytest.approx(15.0)


def test_partial_sub_composite_rescales_present_weights():
    score = economy_score(MetricInput(gdp_per_capita=85_000))

    assert score.value == pytest.approx(85.0)
    assert score.confidence == pytest.approx(0.40)

    growth = growth_score(MetricInput(gdp_growth_rate=3.0))
    assert growth.value == pytest.approx(8 / 15 * 100)
    assert growth.confidence == pytest.approx(0.50)


def test_partial_overall_does_not_rescale(favourable):
    full = compute(favourable, NOW, now=NOW)
    partial_input = favourable.model_copy(
        update={"population_growth_rate": None, "gdp_growth_rate": None}
    )
    partial = compute(partial_input, NOW, now=NOW)

    assert partial.growth.value is None
    assert partial.overall.value == pytest.approx(full.overall.value - 0.15 * full.growth.value)
    assert partial.overall.confidence == pytest.approx(0.85)
    assert partial.overall.value < full.overall.value


def test_livability_needs_a_city_profile_input():
    assert livability_score(MetricInput(air_quality_index=45)).value is None

    with_size = livability_score(MetricInput(air_quality_index=45, population=500_000))
    expected = (0.35 * 85.0 + 0.30 * 100.0) / 0.65
    assert with_size.value == pytest.approx(expected)
    assert with_size.confidence == pytest.approx(0.65)


def test_out_of_range_inputs_are_clamped():
    metrics = MetricInput(
        gdp_per_capita=-10_000,
        unemployment_rate=80,
        air_quality_index=900,
        population=-3,
        population_growth_rate=40,
        gdp_growth_rate=-30,
        cost_of_living_index=10,
    )

    features = compute(metrics, NOW, now=NOW)

    for score in (features.economy, features.livability, features.growth, features.overall):
        assert 0.0 <= score.value <= 100.0
    assert features.sustainability.value == pytest.approx(0.0)
    assert features.economy.value == pytest.approx(0.0)


def test_explanations_and_components(favourable):
    economy = economy_score(favourable)

    assert economy.explanation == "Strong GDP ($85K) and unemployment (4.2%)"
    assert economy.components == (
        "GDP per capita: $85,000 (prosperous, contributes 34.0 points)",
        "Unemployment: 4.2% (healthy job market, contributes 43.2 points)",
    )

    growth = growth_score(favourable)
    assert growth.explanation == "Moderate GDP growth (+3.0%) and population growth (+1.1%)"

    sustainability = sustainability_score(MetricInput(air_quality_index=210))
    assert sustainability.explanation == "Weak air quality (AQI 210)"
    assert sustainability.components == (
        "Air quality (AQI): 210 (very unhealthy, contributes 30.0 points)",
    )


def test_mixed_strength_explanation():
    score = economy_score(MetricInput(gdp_per_capita=90_000, unemployment_rate=8.0))

    assert score.explanation == "Strong GDP ($90K) offset by moderate unemployment (8.0%)"


@pytest.mark.parametrize(
    ("age", "factor"),
    [
        (timedelta(hours=-5), 1.0),
        (timedelta(0), 1.0),
        (timedelta(hours=24), 1.0),
        (timedelta(hours=25), 0.85),
        (timedelta(days=7), 0.85),
        (timedelta(days=8), 0.6),
        (timedelta(days=30), 0.6),
        (timedelta(days=31), 0.4),
    ],
)
def test_recency_factor_steps(age, factor):
    assert recency_factor(age) == factor


def test_payload_uses_camel_case(favourable):
    payload = compute(favourable, NOW, city_slug="new-york", city_name="New York", now=NOW).to_payload()

    assert set(payload) == {
        "citySlug",
        "cityName",
        "computationDate",
        "economy",
        "livability",
        "sustainability",
        "growth",
        "overall",
        "dataCompleteness",
        "confidenceScore",
        "missingData",
        "isStale",
    }
    assert set(payload["overall"]) == {"value", "tier", "explanation", "components", "confidence"}
    assert payload["citySlug"] == "new-york"
    assert payload["computationDate"] == "2025-06-01"
    assert payload["overall"]["tier"] == "good"
