import pytest

from scoring import normalize
from scoring.normalize import (
    normalize_air_quality_index,
    normalize_cost_of_living_index,
    normalize_gdp_growth_rate,
    normalize_gdp_per_capita,
    normalize_population,
    normalize_population_growth_rate,
    normalize_unemployment_rate,
)

ALL_NORMALIZERS = [
    normalize_gdp_per_capita,
    normalize_unemployment_rate,
    normalize_air_quality_index,
    normalize_population,
    normalize_population_growth_rate,
    normalize_gdp_growth_rate,
    normalize_cost_of_living_index,
]


@pytest.mark.parametrize("normalizer", ALL_NORMALIZERS)
def test_absent_input_stays_absent(normalizer):
    assert normalizer(None) is None


@pytest.mark.parametrize("normalizer", ALL_NORMALIZERS)
@pytest.mark.parametrize("value", [-1e12, -50.0, 0.0, 1e12])
def test_extreme_values_are_clamped(normalizer, value):
    points = normalizer(value)
    assert 0.0 <= points <= 100.0


def test_known_values():
    assert normalize_gdp_per_capita(85_000) == pytest.approx(85.0)
    assert normalize_unemployment_rate(4.2) == pytest.approx(72.0)
    assert normalize_air_quality_index(45) == pytest.approx(85.0)
    assert normalize_cost_of_living_index(158) == pytest.approx(46.0)
    assert normalize_population_growth_rate(1.1) == pytest.approx(3.1 / 7 * 100)
    assert normalize_gdp_growth_rate(3.0) == pytest.approx(8 / 15 * 100)


def test_gdp_per_capita_is_monotonic_and_capped():
    samples = [0, 10_000, 40_000, 85_000, 100_000]
    points = [normalize_gdp_per_capita(value) for value in samples]
    assert points == sorted(points)
    assert normalize_gdp_per_capita(1_000_000) == pytest.approx(100.0)
    assert normalize_gdp_per_capita(-5_000) == pytest.approx(0.0)


def test_inverse_metrics_decrease_as_raw_value_grows():
    for normalizer, samples in (
        (normalize_unemployment_rate, [0, 2, 5, 10, 15]),
        (normalize_air_quality_index, [0, 25, 100, 200, 300]),
        (normalize_cost_of_living_index, [50, 90, 130, 200, 250]),
    ):
        points = [normalizer(value) for value in samples]
        assert points == sorted(points, reverse=True)
        assert points[0] == pytest.approx(100.0)
        assert points[-1] == pytest.approx(0.0)

    assert normalize_unemployment_rate(50) == pytest.approx(0.0)


def test_population_prefers_mid_sized_cities():
    assert normalize_population(500_000) == pytest.approx(100.0)
    assert normalize_population(normalize.POPULATION_IDEAL_MIN) == pytest.approx(100.0)
    assert normalize_population(normalize.POPULATION_IDEAL_MAX) == pytest.approx(100.0)
    # one decade above the band halves the score
    assert normalize_population(10_000_000) == pytest.approx(50.0)
    assert normalize_population(2_500) == pytest.approx(0.0)
    assert normalize_population(8_000_000) < normalize_population(2_000_000) < 100.0
    assert normalize_population(50_000) < normalize_population(100_000) < 100.0


def test_population_handles_non_positive_values():
    assert normalize_population(0) == pytest.approx(0.0)
    assert normalize_population(-10) == pytest.approx(0.0)


def test_growth_rates_rise_across_their_bands():
    for normalizer, samples in (
        (normalize_population_growth_rate, [-2.0, -1.0, 0.0, 1.1, 3.0, 5.0]),
        (normalize_gdp_growth_rate, [-5.0, -2.0, 0.0, 3.0, 7.5, 10.0]),
    ):
        points = [normalizer(value) for value in samples]
        assert points == sorted(points)
        assert len(set(points)) == len(points)
        assert points[0] == pytest.approx(0.0)
        assert points[-1] == pytest.approx(100.0)
