from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from backend.fincore.forecast.engine import ForecastReport


@dataclass(frozen=True)
class Scenario:
    name: str
    revenue_change_pct: float = 0.0
    expense_change_pct: float = 0.0

    @property
    def multiplier(self) -> float:
        return (1 + self.revenue_change_pct / 100) * (1 - self.expense_change_pct / 100)


@dataclass(frozen=True)
class ScenarioResult:
    scenario: str
    total_cash_flow: float
    negative_days: int
    impact: float
    impact_pct: float


@dataclass(frozen=True)
class ScenarioAnalysis:
    base_total: float
    scenarios: List[ScenarioResult]


def apply_scenarios(base: ForecastReport, scenarios: Sequence[Scenario]) -> ScenarioAnalysis:
    """
    Uniform multiplicative shock on every predicted day of the base forecast.

    The model is not re-fit; each scenario scales the base points.
    """
    base_total = base.summary.expected_total
    results: List[ScenarioResult] = []

    for scenario in scenarios:
        multiplier = scenario.multiplier
        adjusted = [p.predicted * multiplier for p in base.points]
        total = sum(adjusted)
        impact = total - base_total
        results.append(
            ScenarioResult(
                scenario=scenario.name,
                total_cash_flow=total,
                negative_days=sum(1 for value in adjusted if value < 0),
                impact=impact,
                impact_pct=(impact / base_total) * 100 if base_total != 0 else 0.0,
            )
        )

    return ScenarioAnalysis(base_total=base_total, scenarios=results)
