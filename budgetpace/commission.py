"""
BudgetPace - Commission Converter Module.

Translates between gross amounts (billed to the client, commission
included) and net amounts (placed on the ad platform).

Commission Models:
    - Fixed: a flat amount per budget, net = gross - value
    - Percentage: a share of gross, net = gross * (1 - value / 100)

Classes:
    CommissionConverter: Gross/net conversion and gross-spend estimation.
"""

from decimal import Decimal
from typing import Optional

from budgetpace.errors import ValidationError
from budgetpace.schema import Commission, CommissionType

HUNDRED = Decimal("100")


class CommissionConverter:
    """
    Converts budget and spend amounts between gross and net.

    A missing commission (None) converts every amount to itself.

    Example:
        >>> converter = CommissionConverter()
        >>> fee = Commission(CommissionType.PERCENTAGE, Decimal("20"))
        >>> converter.to_net(Decimal("100000"), fee)
        Decimal('80000.0')
    """

    def validate(self, commission: Commission) -> Commission:
        """
        Validates a commission before it is stored.

        Percentage values must lie in [0, 100); 100 is rejected because it
        makes the gross of any net amount undefined.

        Args:
            commission: Commission to validate.

        Returns:
            The same commission, for chaining.

        Raises:
            ValidationError: If the value is out of range.
        """
        value = commission.value
        if value < Decimal("0"):
            raise ValidationError.for_field(
                "value", str(value), "Commission value must be a non-negative number"
            )
        if commission.type == CommissionType.PERCENTAGE and value >= HUNDRED:
            raise ValidationError.for_field(
                "value", str(value), "Percentage commission must be below 100"
            )
        return commission

    def to_net(self, gross: Decimal, commission: Optional[Commission]) -> Decimal:
        """
        Converts a gross amount to net.

        Args:
            gross: Amount including commission.
            commission: Client commission, or None.

        Returns:
            Amount excluding commission.
        """
        if commission is None:
            return gross
        if commission.type == CommissionType.FIXED:
            return gross - commission.value
        return gross * (Decimal("1") - commission.value / HUNDRED)

    def to_gross(self, net: Decimal, commission: Optional[Commission]) -> Decimal:
        """
        Converts a net amount to gross. Inverse of to_net.

        Args:
            net: Amount excluding commission.
            commission: Client commission, or None.

        Returns:
            Amount including commission.
        """
        if commission is None:
            return net
        if commission.type == CommissionType.FIXED:
            return net + commission.value
        return net / (Decimal("1") - commission.value / HUNDRED)

    def pro_rated_gross_from_spend(
        self,
        spend: Decimal,
        ad_budget: Decimal,
        commission: Commission
    ) -> Decimal:
        """
        Estimates gross spend under a fixed commission.

        The share of the fixed fee consumed so far is taken to be the
        share of the ad budget spent: spend + value * (spend / ad_budget).
        An ad budget of zero or below (fee larger than the allocation)
        leaves spend as-is.

        Args:
            spend: Net spend to date.
            ad_budget: Net ad budget of the window.
            commission: Fixed commission.

        Returns:
            Estimated gross spend.
        """
        if ad_budget <= Decimal("0"):
            ratio = Decimal("0")
        else:
            ratio = spend / ad_budget
        return spend + commission.value * ratio

    def gross_spend(
        self,
        spend: Decimal,
        commission: Optional[Commission],
        ad_budget: Decimal = Decimal("0")
    ) -> Decimal:
        """
        Converts platform spend to gross spend.

        Percentage commissions use to_gross; fixed commissions use the
        pro-rated estimate against the net ad budget.
        """
        if commission is None:
            return spend
        if commission.type == CommissionType.PERCENTAGE:
            return self.to_gross(spend, commission)
        return self.pro_rated_gross_from_spend(spend, ad_budget, commission)

    def daily_gross(
        self,
        live_daily_budget: Decimal,
        commission: Optional[Commission]
    ) -> Decimal:
        """
        Scales a platform daily budget to gross for projections.

        Only percentage commissions scale a daily figure; a fixed fee
        belongs to the whole budget, not to each day.
        """
        if commission is not None and commission.type == CommissionType.PERCENTAGE:
            return self.to_gross(live_daily_budget, commission)
        return live_daily_budget
