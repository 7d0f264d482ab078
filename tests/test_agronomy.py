from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from models.records import TemperatureReading
from services.agronomy import (
    CropAdvisor,
    build_insights,
    describe_trend,
    soil_health_score,
    temperature_alert,
)


@pytest.mark.parametrize(
    ("temps", "expected"),
    [
        ([], 0.0),
        ([5.0], 20.0),
        ([40.0], 20.0),
        ([14.0], 52.0),
        ([18.0, 22.0], 92.2),
        ([30.0], 80.0),
    ],
)
def test_soil_health_score_bands(temps, expected) -> None:
    assert soil_health_score(temps) == pytest.approx(expected)


def test_temperature_alerts() -> None:
    assert temperature_alert(1.5).startswith("Frost Alert")
    assert temperature_alert(36.0).startswith("High Temp Alert")
    assert temperature_alert(4.0, ambient_temperature=-1.0).startswith("Frost Risk")
    assert temperature_alert(4.0) is None
    assert temperature_alert(20.0, ambient_temperature=-3.0) is None


def test_describe_trend_thresholds() -> None:
    assert describe_trend(2.0).startswith("Soil is warming up quickly")
    assert describe_trend(1.0) == "Soil is warming up gradually."
    assert describe_trend(-2.0).startswith("Soil is cooling down quickly")
    assert describe_trend(-1.0) == "Soil is cooling down gradually."
    assert describe_trend(0.2) == "Soil temperature stable."


def test_crop_recommendations_are_inclusive() -> None:
    advisor = CropAdvisor()

    assert advisor.recommend(18.0) == ["Tomatoes", "Carrots", "Lettuce", "Potatoes"]
    assert advisor.recommend(30.0) == ["Tomatoes"]
    assert advisor.recommend(5.0) == []


def test_planting_window_messages() -> None:
    advisor = CropAdvisor()

    assert advisor.planting_window(19.0, 0.0) == "Soil temp is currently ideal for some crops."
    assert advisor.planting_window(7.0, 1.2) == "Optimal planting window in 3 days (warming trend)."
    assert advisor.planting_window(7.0, -0.5).startswith("Soil is cooling.")
    assert advisor.planting_window(7.0, 0.0).startswith("Soil temperature is stable.")


def test_build_insights_prefers_alerts_over_trend() -> None:
    now = datetime(2024, 6, 10, 12, tzinfo=timezone.utc)
    readings = [
        TemperatureReading(now - timedelta(minutes=40), 1.0),
        TemperatureReading(now, 1.5),
    ]

    insights = build_insights(readings, soil_temperature=1.5, now=now)

    assert insights.is_alert is True
    assert insights.message.startswith("Frost Alert")
    assert insights.health_score == 20.0
    assert insights.recommended_crops == []
    assert insights.trend_per_day > 0


def test_build_insights_with_stable_soil() -> None:
    now = datetime(2024, 6, 10, 12, tzinfo=timezone.utc)
    readings = [TemperatureReading(now - timedelta(hours=30), 40.0), TemperatureReading(now, 21.0)]

    insights = build_insights(readings, soil_temperature=21.0, ambient_temperature=25.0, now=now)

    assert insights.is_alert is False
    assert insights.message == "Soil temperature stable."
    assert insights.health_score == pytest.approx(93.3)
    assert insights.ambient_temperature == 25.0
    assert "Tomatoes" in insights.recommended_crops


def test_build_insights_summarises_last_24_hours() -> None:
    now = datetime(2024, 6, 10, 12, tzinfo=timezone.utc)
    readings = [
        TemperatureReading(now - timedelta(hours=30), 35.0),
        TemperatureReading(now - timedelta(hours=20), 14.0),
        TemperatureReading(now - timedelta(hours=5), 22.0),
        TemperatureReading(now, 18.0),
    ]

    insights = build_insights(readings, soil_temperature=18.0, now=now)

    assert insights.average_24h == pytest.approx(18.0)
    assert insights.high_24h == 22.0
    assert insights.low_24h == 14.0


def test_build_insights_without_recent_readings() -> None:
    now = datetime(2024, 6, 10, 12, tzinfo=timezone.utc)

    insights = build_insights([], soil_temperature=0.0, now=now)

    assert (insights.average_24h, insights.high_24h, insights.low_24h) == (0.0, 0.0, 0.0)
