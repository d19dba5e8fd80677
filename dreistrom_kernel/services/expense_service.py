"""
ExpenseService -- records the expenses and allocation rules that input VAT
is derived from.

Responsibility:
    Persists an expense with its gross amount and VAT rate, optionally
    linked to an allocation rule that splits it across freelance, trade and
    personal use. The VAT rate defaults to the injected input default rate
    (19 % unless configured otherwise).

Failure modes:
    - InvalidAmountError: negative gross amount or VAT rate.
    - NotFoundError: allocation rule missing or owned by another user.
    - ValueError: allocation percentages not summing to 100.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from dreistrom_kernel.domain.dtos import AllocationShares, ExpenseRecord
from dreistrom_kernel.domain.money import Money, to_ratio
from dreistrom_kernel.exceptions import InvalidAmountError, NotFoundError
from dreistrom_kernel.logging_config import get_logger
from dreistrom_kernel.models.expense import AllocationRule, ExpenseEntry
from dreistrom_kernel.services.base import BaseService, coerce_uuid

logger = get_logger("services.expense")

DEFAULT_INPUT_VAT_RATE = Decimal("0.19")


class ExpenseService(BaseService[ExpenseEntry]):

    def __init__(self, session: Session, default_vat_rate: Decimal = DEFAULT_INPUT_VAT_RATE):
        super().__init__(session)
        self._default_vat_rate = default_vat_rate

    def create_allocation_rule(
        self,
        user_id: UUID | str,
        name: str,
        shares: AllocationShares,
    ) -> UUID:
        owner = coerce_uuid(user_id, "User")
        rule = AllocationRule(
            user_id=owner,
            name=name,
            freiberuf_pct=shares.freiberuf_pct,
            gewerbe_pct=shares.gewerbe_pct,
            personal_pct=shares.personal_pct,
        )
        self.session.add(rule)
        self.session.flush()
        logger.info(
            "allocation_rule_created",
            extra={"rule_id": str(rule.id), "rule_name": name},
        )
        return rule.id

    def record_expense(
        self,
        user_id: UUID | str,
        gross: Money,
        expense_date: date,
        category: str,
        allocation_rule_id: UUID | str | None = None,
        vat_rate: Decimal | str | None = None,
        description: str | None = None,
    ) -> ExpenseRecord:
        owner = coerce_uuid(user_id, "User")
        if gross.is_negative:
            raise InvalidAmountError(gross, "expense amount must not be negative")
        rate = self._default_vat_rate if vat_rate is None else to_ratio(vat_rate, field="vat_rate")
        if rate < 0:
            raise InvalidAmountError(vat_rate, "VAT rate must not be negative")

        rule = None
        if allocation_rule_id is not None:
            key = coerce_uuid(allocation_rule_id, "AllocationRule")
            rule = self.session.get(AllocationRule, key)
            if rule is None or rule.user_id != owner:
                raise NotFoundError("AllocationRule", str(key))

        expense = ExpenseEntry(
            user_id=owner,
            gross_cents=gross.minor_units,
            currency=gross.currency,
            vat_rate=rate,
            category=category,
            expense_date=expense_date,
            description=description,
            allocation_rule=rule,
        )
        self.session.add(expense)
        self.session.flush()

        logger.info(
            "expense_recorded",
            extra={
                "expense_id": str(expense.id),
                "gross_cents": expense.gross_cents,
                "allocated": rule is not None,
            },
        )
        return ExpenseRecord.from_model(expense)
