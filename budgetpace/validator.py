"""
BudgetPace - Request Validation Module.

This module validates budget, commission and alert-settings requests
before anything is computed or written, and parses platform campaign
records. All monetary values are converted to Decimal with field-level
error reporting.

Accepted amount formats:
    - "300000" (plain number)
    - "300,000" (with thousands separator)
    - "₩ 300,000" / "$300000.00" (with currency symbol)

Classes:
    CampaignValidationResult: Container for campaign record validation.
    RequestValidator: Validates write requests and campaign records.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from budgetpace.date_logic import DateManager
from budgetpace.errors import FieldError, ValidationError
from budgetpace.schema import (
    AlertSettings,
    Campaign,
    Commission,
    CommissionType,
    FixedRawConfig,
    RecurringRawConfig,
)
from budgetpace.serialiser import DocumentSerialiser


@dataclass
class CampaignValidationResult:
    """
    Container for campaign record validation results.

    Attributes:
        campaigns: Successfully parsed Campaign objects.
        errors: Field errors for rejected records.
        total_rows: Number of records processed.
    """

    campaigns: List[Campaign] = field(default_factory=list)
    errors: List[FieldError] = field(default_factory=list)
    total_rows: int = 0

    @property
    def is_valid(self) -> bool:
        """Returns True if validation produced no errors."""
        return len(self.errors) == 0

    @property
    def valid_count(self) -> int:
        return len(self.campaigns)


class RequestValidator:
    """
    Validates write requests before they reach the stores.

    Every method collects all field errors of a request and raises a
    single ValidationError carrying them.

    Example:
        >>> validator = RequestValidator()
        >>> raw = validator.validate_recurring("2025-12", "2026-02", "300,000")
        >>> raw.amount
        Decimal('300000')
    """

    # Currency symbols, spaces and thousands separators
    CURRENCY_CLEAN_PATTERN = re.compile(r"[\s,₩$€£]")
    NUMBER_PATTERN = re.compile(r"^-?\d+\.?\d*$")

    def __init__(self, date_manager: Optional[DateManager] = None):
        self._date_manager = date_manager or DateManager()
        self._serialiser = DocumentSerialiser()

    def parse_amount(
        self,
        value: Any,
        field_name: str,
        must_be_positive: bool = False
    ) -> Tuple[Optional[Decimal], Optional[FieldError]]:
        """
        Parses an amount to Decimal with validation.

        Args:
            value: Decimal, int or string amount.
            field_name: Name of the field for error messages.
            must_be_positive: If True, value must be > 0; otherwise >= 0.

        Returns:
            Tuple of (Decimal value or None, FieldError or None).
        """
        if isinstance(value, Decimal):
            decimal_value = value
        elif isinstance(value, int) and not isinstance(value, bool):
            decimal_value = Decimal(value)
        else:
            original = "" if value is None else str(value)
            cleaned = self.CURRENCY_CLEAN_PATTERN.sub("", original)
            if not cleaned:
                return None, FieldError(field_name, original, f"{field_name} cannot be empty")
            if not self.NUMBER_PATTERN.match(cleaned):
                return None, FieldError(
                    field_name,
                    original,
                    f"{field_name} must be a valid number (received: '{original}')"
                )
            try:
                decimal_value = Decimal(cleaned)
            except InvalidOperation:
                return None, FieldError(
                    field_name,
                    original,
                    f"{field_name} must be a valid number (received: '{original}')"
                )

        if not decimal_value.is_finite():
            return None, FieldError(field_name, str(value), f"{field_name} must be finite")
        if must_be_positive and decimal_value <= Decimal("0"):
            return None, FieldError(
                field_name, str(value), f"{field_name} must be a positive number"
            )
        if decimal_value < Decimal("0"):
            return None, FieldError(
                field_name, str(value), f"{field_name} must be a non-negative number"
            )
        return decimal_value, None

    def validate_recurring(
        self,
        start_month: str,
        end_month: str,
        amount: Any
    ) -> RecurringRawConfig:
        """
        Validates a recurring budget request.

        Args:
            start_month: First month, "YYYY-MM".
            end_month: Last month, "YYYY-MM".
            amount: Monthly amount.

        Returns:
            Validated RecurringRawConfig.

        Raises:
            ValidationError: With every field error of the request.
        """
        errors: List[FieldError] = []
        months = {}
        for field_name, value in (("startMonth", start_month), ("endMonth", end_month)):
            try:
                months[field_name] = self._date_manager.parse_month(value)
            except ValidationError as exc:
                errors.append(FieldError(field_name, value, exc.errors[0].message))

        if len(months) == 2 and months["endMonth"] < months["startMonth"]:
            errors.append(FieldError(
                "endMonth", end_month, "End month must not be before start month"
            ))

        monthly, amount_error = self.parse_amount(amount, "amount")
        if amount_error:
            errors.append(amount_error)

        self._raise_if_errors("Invalid recurring budget", errors)
        return RecurringRawConfig(start_month=start_month, end_month=end_month, amount=monthly)

    def validate_fixed(self, start: Any, end: Any, amount: Any) -> FixedRawConfig:
        """
        Validates a fixed budget request.

        Raises:
            ValidationError: With every field error of the request.
        """
        errors: List[FieldError] = []
        dates: Dict[str, date] = {}
        for field_name, value in (("start", start), ("end", end)):
            try:
                dates[field_name] = self._date_manager.normalise(value)
            except ValidationError:
                errors.append(FieldError(field_name, value, f"{field_name} must be a date (YYYY-MM-DD)"))

        if len(dates) == 2 and dates["end"] < dates["start"]:
            errors.append(FieldError(
                "end", str(end), f"End date {dates['end']} is before start date {dates['start']}"
            ))

        total, amount_error = self.parse_amount(amount, "amount")
        if amount_error:
            errors.append(amount_error)

        self._raise_if_errors("Invalid fixed budget", errors)
        return FixedRawConfig(start=dates["start"], end=dates["end"], amount=total)

    def validate_commission(self, commission_type: Any, value: Any) -> Commission:
        """
        Validates a commission request.

        Percentage values must lie in [0, 100).
        """
        errors: List[FieldError] = []
        parsed_type = None
        try:
            parsed_type = CommissionType(commission_type)
        except ValueError:
            errors.append(FieldError(
                "type", commission_type, "type must be one of: fixed, percentage"
            ))

        parsed_value, value_error = self.parse_amount(value, "value")
        if value_error:
            errors.append(value_error)
        elif parsed_type == CommissionType.PERCENTAGE and parsed_value >= Decimal("100"):
            errors.append(FieldError("value", str(value), "Percentage commission must be below 100"))

        self._raise_if_errors("Invalid commission", errors)
        return Commission(type=parsed_type, value=parsed_value)

    def validate_alert_settings(self, settings: AlertSettings) -> AlertSettings:
        """
        Validates alert settings before they are stored.

        Thresholds must be non-negative; enabled types come from the
        closed set of alert kinds by construction.
        """
        errors: List[FieldError] = []
        thresholds = {
            "dailyBudgetThreshold": settings.daily_budget_threshold,
            "progressMismatchThreshold": settings.progress_mismatch_threshold,
            "exhaustionThreshold": settings.exhaustion_threshold,
            "endingSpendRateThreshold": settings.ending_spend_rate_threshold,
        }
        for field_name, value in thresholds.items():
            _, error = self.parse_amount(value, field_name)
            if error:
                errors.append(error)

        if settings.ending_days_threshold < 0:
            errors.append(FieldError(
                "endingDaysThreshold",
                settings.ending_days_threshold,
                "endingDaysThreshold must be a non-negative number"
            ))

        self._raise_if_errors("Invalid alert settings", errors)
        return settings

    def validate_campaign_rows(self, rows: List[Dict[str, Any]]) -> CampaignValidationResult:
        """
        Parses platform campaign records, collecting errors per record.

        Args:
            rows: Campaign records as delivered by the sync collaborator.

        Returns:
            CampaignValidationResult with parsed campaigns and any errors.
        """
        result = CampaignValidationResult(total_rows=len(rows))

        for index, row in enumerate(rows):
            if not isinstance(row, dict) or not row.get("id"):
                result.errors.append(FieldError(
                    f"campaigns[{index}].id", row, "Campaign record must have an id"
                ))
                continue
            try:
                result.campaigns.append(self._serialiser.campaign_from_dict(row))
            except ValidationError as exc:
                for error in exc.errors:
                    result.errors.append(FieldError(
                        f"campaigns[{index}].{error.field_name}", error.value, error.message
                    ))

        return result

    def _raise_if_errors(self, message: str, errors: List[FieldError]) -> None:
        if errors:
            details = "; ".join(str(error) for error in errors)
            raise ValidationError(f"{message}: {details}", errors)
