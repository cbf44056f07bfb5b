"""US EPA Air Quality Index conversion for PM2.5 concentrations."""

from __future__ import annotations

# (concentration low, concentration high, index low, index high), ug/m3 24h average
PM25_BREAKPOINTS: tuple[tuple[float, float, int, int], ...] = (
    (0.0, 12.0, 0, 50),
    (12.1, 35.4, 51, 100),
    (35.5, 55.4, 101, 150),
    (55.5, 150.4, 151, 200),
    (150.5, 250.4, 201, 300),
    (250.5, 500.4, 301, 500),
)


def pm25_to_aqi(concentration: float | None) -> int | None:
    """Linear interpolation within the EPA breakpoint that contains ``concentration``.

    Concentrations are truncated to one decimal as the EPA method prescribes;
    values above the top breakpoint are reported as 500.
    """

    if concentration is None or concentration < 0:
        return None
    truncated = int(concentration * 10) / 10
    for c_low, c_high, i_low, i_high in PM25_BREAKPOINTS:
        if truncated <= c_high:
            return round((i_high - i_low) / (c_high - c_low) * (truncated - c_low) + i_low)
    return 500


def aqi_category(aqi: float | None) -> str:
    if aqi is None:
        return "Unknown"
    if aqi <= 50:
        return "Good"
    if aqi <= 100:
        return "Moderate"
    if aqi <= 150:
        return "Unhealthy for Sensitive Groups"
    if aqi <= 200:
        return "Unhealthy"
    if aqi <= 300:
        return "Very Unhealthy"
    return "Hazardous"


__all__ = ["PM25_BREAKPOINTS", "aqi_category", "pm25_to_aqi"]
