"""
BudgetPace - Alert Rule Engine Tests.

Unit tests for each alert rule plus a property check that disabled
alert kinds are never emitted.
"""

from datetime import date
from decimal import Decimal

from hypothesis import given, settings
from hypothesis.strategies import decimals, integers, sampled_from

from budgetpace.alerts import AlertRuleEngine
from budgetpace.calculator import PacingEngine
from budgetpace.date_logic import DateManager
from budgetpace.schema import (
    AlertSettings,
    AlertSeverity,
    AlertType,
    BudgetPeriod,
    BudgetType,
    Campaign,
    CampaignBudgetConfig,
    CampaignStatus,
)

DEC_START = date(2025, 12, 1)
DEC_END = date(2025, 12, 31)
ALLOCATED = Decimal("310000")


def make_campaign(spend: str, live: str, status=CampaignStatus.ACTIVE) -> Campaign:
    return Campaign(
        id="cmp_1",
        name="Winter Sale",
        client_id="act_1",
        status=status,
        spend_to_date=Decimal(spend),
        live_daily_budget=Decimal(live),
    )


def december_config() -> CampaignBudgetConfig:
    return CampaignBudgetConfig(
        campaign_id="cmp_1",
        type=BudgetType.FIXED,
        periods=[BudgetPeriod(DEC_START, DEC_END, ALLOCATED)],
    )


class TestAlertRuleEngineUnit:
    """Unit tests for AlertRuleEngine."""

    def setup_method(self) -> None:
        self.dm = DateManager()
        self.pacing = PacingEngine(self.dm)
        self.engine = AlertRuleEngine(self.dm)
        self.config = december_config()

    def evaluate(self, campaign: Campaign, today: date, alert_settings=None, config="default"):
        config = self.config if config == "default" else config
        pacing = None
        if config is not None:
            pacing = self.pacing.analyse_campaign(
                campaign, ALLOCATED, None, today, DEC_START, DEC_END
            )
        return self.engine.evaluate(
            "agency_1", campaign, config, pacing, alert_settings or AlertSettings(), today
        )

    def types_of(self, alerts) -> set:
        return {alert.type for alert in alerts}

    def test_healthy_campaign_raises_nothing(self) -> None:
        """Spend in line with time and live budget matching recommendation."""
        # 100000 / 310000 is about 32.3%, 10 of 31 days is about 32.3%
        campaign = make_campaign("100000", "9545")
        assert self.evaluate(campaign, date(2025, 12, 10)) == []

    def test_paused_campaign_is_never_evaluated(self) -> None:
        campaign = make_campaign("300000", "99999", status=CampaignStatus.PAUSED)
        assert self.evaluate(campaign, date(2025, 12, 10)) == []

    def test_budget_not_set(self) -> None:
        campaign = make_campaign("0", "1000")

        alerts = self.evaluate(campaign, date(2025, 12, 10), config=None)

        assert len(alerts) == 1
        assert alerts[0].type == AlertType.BUDGET_NOT_SET
        assert alerts[0].severity == AlertSeverity.LOW
        assert alerts[0].account_id == "agency_1"
        assert alerts[0].campaign_id == "cmp_1"

    def test_budget_not_set_for_empty_config(self) -> None:
        empty = CampaignBudgetConfig("cmp_1", BudgetType.FIXED, [])
        alerts = self.engine.evaluate(
            "agency_1", make_campaign("0", "1000"), empty, None, AlertSettings(), date(2025, 12, 10)
        )
        assert self.types_of(alerts) == {AlertType.BUDGET_NOT_SET}

    def test_daily_budget_over(self) -> None:
        alerts = self.evaluate(make_campaign("100000", "15000"), date(2025, 12, 10))

        over = [a for a in alerts if a.type == AlertType.DAILY_BUDGET_OVER]
        assert len(over) == 1
        assert over[0].severity == AlertSeverity.HIGH
        assert over[0].metadata["dailyBudget"] == Decimal("15000")
        assert "above" in over[0].message

    def test_daily_budget_under(self) -> None:
        alerts = self.evaluate(make_campaign("100000", "5000"), date(2025, 12, 10))
        assert AlertType.DAILY_BUDGET_UNDER in self.types_of(alerts)
        assert AlertType.DAILY_BUDGET_OVER not in self.types_of(alerts)

    def test_daily_budget_within_threshold(self) -> None:
        # Recommended is 210000 / 22, about 9545; 11000 is about 15% above
        alerts = self.evaluate(make_campaign("100000", "11000"), date(2025, 12, 10))
        assert AlertType.DAILY_BUDGET_OVER not in self.types_of(alerts)

    def test_daily_budget_skipped_without_live_budget(self) -> None:
        alerts = self.evaluate(make_campaign("100000", "0"), date(2025, 12, 10))
        assert not self.types_of(alerts) & {
            AlertType.DAILY_BUDGET_OVER, AlertType.DAILY_BUDGET_UNDER
        }

    def test_progress_mismatch_over(self) -> None:
        alerts = self.evaluate(make_campaign("200000", "5000"), date(2025, 12, 10))

        mismatch = [a for a in alerts if a.type == AlertType.PROGRESS_MISMATCH_OVER]
        assert len(mismatch) == 1
        assert mismatch[0].metadata["periodProgress"] == Decimal("32.26")
        assert mismatch[0].metadata["budgetProgress"] == Decimal("64.52")

    def test_progress_mismatch_under(self) -> None:
        alerts = self.evaluate(make_campaign("10000", "14545"), date(2025, 12, 20))
        assert AlertType.PROGRESS_MISMATCH_UNDER in self.types_of(alerts)

    def test_campaign_ending_with_low_spend(self) -> None:
        alerts = self.evaluate(make_campaign("150000", "40000"), date(2025, 12, 28))

        ending = [a for a in alerts if a.type == AlertType.CAMPAIGN_ENDING]
        assert len(ending) == 1
        assert ending[0].severity == AlertSeverity.MEDIUM
        assert ending[0].metadata["daysLeft"] == 4

    def test_campaign_ending_not_raised_with_high_spend(self) -> None:
        alerts = self.evaluate(make_campaign("260000", "12500"), date(2025, 12, 28))
        assert AlertType.CAMPAIGN_ENDING not in self.types_of(alerts)

    def test_campaign_ending_not_raised_early(self) -> None:
        alerts = self.evaluate(make_campaign("10000", "1000"), date(2025, 12, 10))
        assert AlertType.CAMPAIGN_ENDING not in self.types_of(alerts)

    def test_budget_almost_exhausted(self) -> None:
        alerts = self.evaluate(make_campaign("300000", "1000"), date(2025, 12, 30))

        exhausted = [a for a in alerts if a.type == AlertType.BUDGET_ALMOST_EXHAUSTED]
        assert len(exhausted) == 1
        assert exhausted[0].metadata["spendRate"] == Decimal("96.77")

    def test_disabled_type_is_not_emitted(self) -> None:
        alert_settings = AlertSettings(
            enabled_types=[t for t in AlertType if t != AlertType.DAILY_BUDGET_OVER]
        )
        alerts = self.evaluate(make_campaign("100000", "15000"), date(2025, 12, 10), alert_settings)
        assert AlertType.DAILY_BUDGET_OVER not in self.types_of(alerts)

    def test_custom_threshold(self) -> None:
        alert_settings = AlertSettings(daily_budget_threshold=Decimal("10"))
        alerts = self.evaluate(make_campaign("100000", "11000"), date(2025, 12, 10), alert_settings)
        assert AlertType.DAILY_BUDGET_OVER in self.types_of(alerts)


class TestAlertRuleEngineProperty:
    """Property-based tests for AlertRuleEngine."""

    def setup_method(self) -> None:
        self.dm = DateManager()
        self.pacing = PacingEngine(self.dm)
        self.engine = AlertRuleEngine(self.dm)
        self.config = december_config()

    @given(
        decimals(min_value=Decimal("0"), max_value=Decimal("400000"), places=2),
        decimals(min_value=Decimal("0"), max_value=Decimal("50000"), places=2),
        integers(min_value=1, max_value=31),
        sampled_from(list(AlertType)),
    )
    @settings(max_examples=200)
    def test_disabled_types_never_emitted(
        self, spend: Decimal, live: Decimal, day: int, disabled: AlertType
    ) -> None:
        campaign = make_campaign(str(spend), str(live))
        today = date(2025, 12, day)
        pacing = self.pacing.analyse_campaign(
            campaign, ALLOCATED, None, today, DEC_START, DEC_END
        )
        alert_settings = AlertSettings(enabled_types=[t for t in AlertType if t != disabled])

        alerts = self.engine.evaluate(
            "agency_1", campaign, self.config, pacing, alert_settings, today
        )

        assert disabled not in {alert.type for alert in alerts}
        assert len({alert.type for alert in alerts}) == len(alerts)
