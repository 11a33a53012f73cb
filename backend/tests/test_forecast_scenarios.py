from datetime import date, timedelta

import pytest

from backend.fincore.analytics.cash_flow import CashFlowPoint
from backend.fincore.forecast.accuracy import ForecastEvaluation, score_accuracy
from backend.fincore.forecast.engine import ForecastPoint, ForecastReport, ForecastSummary, build_forecast
from backend.fincore.forecast.scenarios import Scenario, apply_scenarios


def _base_report():
    history = [CashFlowPoint(date=date(2024, 1, 1) + timedelta(days=i), amount=300.0 + 4 * i) for i in range(30)]
    return build_forecast(history, 90)


def _report(predicted_values):
    points = [
        ForecastPoint(date=date(2024, 1, 1) + timedelta(days=i), predicted=v, lower_bound=v, upper_bound=v, confidence=1.0)
        for i, v in enumerate(predicted_values)
    ]
    return ForecastReport(
        period_days=len(points),
        points=points,
        summary=ForecastSummary(expected_total=sum(predicted_values), trend="stable", risk="low", confidence=1.0),
        recommendations=[],
    )


def test_neutral_scenario_reproduces_base():
    base = _base_report()
    analysis = apply_scenarios(base, [Scenario(name="baseline")])

    result = analysis.scenarios[0]
    assert analysis.base_total == pytest.approx(base.summary.expected_total)
    assert result.total_cash_flow == pytest.approx(base.summary.expected_total)
    assert result.impact == pytest.approx(0.0)
    assert result.impact_pct == pytest.approx(0.0)


def test_scenario_multiplier():
    assert Scenario("growth", revenue_change_pct=10).multiplier == pytest.approx(1.1)
    assert Scenario("cuts", expense_change_pct=20).multiplier == pytest.approx(0.8)
    assert Scenario("both", revenue_change_pct=10, expense_change_pct=20).multiplier == pytest.approx(0.88)


def test_scenarios_scale_every_point_and_keep_order():
    base = _report([100.0, -50.0, 200.0])
    analysis = apply_scenarios(
        base,
        [Scenario("growth", revenue_change_pct=50), Scenario("flip", revenue_change_pct=-200)],
    )

    growth, flip = analysis.scenarios
    assert growth.scenario == "growth"
    assert growth.total_cash_flow == pytest.approx(375.0)
    assert growth.impact == pytest.approx(125.0)
    assert growth.impact_pct == pytest.approx(50.0)
    assert growth.negative_days == 1

    assert flip.scenario == "flip"
    assert flip.total_cash_flow == pytest.approx(-250.0)
    assert flip.negative_days == 2


def test_impact_pct_zero_when_base_total_is_zero():
    analysis = apply_scenarios(_report([100.0, -100.0]), [Scenario("any", revenue_change_pct=25)])
    assert analysis.base_total == 0.0
    assert analysis.scenarios[0].impact_pct == 0.0


def _evaluation(predicted, actual):
    return ForecastEvaluation(
        log_id="log",
        window_start=date(2024, 1, 2),
        window_end=date(2024, 1, 31),
        predicted_total=predicted,
        actual_total=actual,
    )


def test_accuracy_empty():
    result = score_accuracy([])
    assert (result.accuracy, result.mae, result.mape, result.evaluations) == (0.0, 0.0, 0.0, 0)


def test_accuracy_from_evaluations():
    result = score_accuracy([_evaluation(1000.0, 800.0), _evaluation(900.0, 1000.0)])
    assert result.mae == pytest.approx(150.0)
    assert result.mape == pytest.approx(17.5)
    assert result.accuracy == pytest.approx(0.825)
    assert result.evaluations == 2


def test_accuracy_floors_at_zero_and_skips_zero_actuals():
    assert _evaluation(500.0, 0.0).percent_error == 0.0
    assert score_accuracy([_evaluation(5000.0, 1000.0)]).accuracy == 0.0
