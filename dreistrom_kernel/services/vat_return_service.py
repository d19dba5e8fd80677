"""
VatReturnService -- periodic VAT returns (monthly, quarterly, annual).

Responsibility:
    Generates a DRAFT return for a period from the VAT summary over both
    invoiceable streams, regenerates it while it is still a draft, and
    submits it.

Invariants enforced:
    - net payable is always output minus input (VatReturn.apply_amounts).
    - A SUBMITTED return is final: regenerating or submitting it again
      raises StateConflictError, and the ORM listener blocks any edit.

Audit relevance:
    Generation and submission emit AuditEvents to the sink.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from dreistrom_kernel.domain.clock import Clock
from dreistrom_kernel.domain.dtos import AuditEvent, VatReturnView
from dreistrom_kernel.domain.money import DEFAULT_CURRENCY
from dreistrom_kernel.domain.periods import PeriodType, coerce_period_type, period_bounds
from dreistrom_kernel.exceptions import NotFoundError, StateConflictError
from dreistrom_kernel.logging_config import get_logger
from dreistrom_kernel.models.vat_return import VatReturn, VatReturnStatus
from dreistrom_kernel.services.audit import AuditSink, LoggingAuditSink
from dreistrom_kernel.services.base import BaseService, coerce_uuid
from dreistrom_kernel.services.vat_service import VatService

logger = get_logger("services.vat_return")


class VatReturnService(BaseService[VatReturn]):

    def __init__(
        self,
        session: Session,
        clock: Clock,
        audit_sink: AuditSink | None = None,
        currency: str = DEFAULT_CURRENCY,
    ):
        super().__init__(session)
        self._clock = clock
        self._audit = audit_sink or LoggingAuditSink()
        self._currency = currency
        self._vat = VatService(session, currency)

    def generate_for_period(
        self,
        user_id: UUID | str,
        fiscal_year: int,
        period_type: PeriodType | str,
        period_number: int,
    ) -> VatReturnView:
        """
        Create or refresh the DRAFT return for one period.

        Raises:
            InvalidArgumentError: unknown period type, or period number out of
                range for it.
            StateConflictError: the return was already submitted.
        """
        owner = coerce_uuid(user_id, "User")
        ptype = coerce_period_type(period_type)
        bounds = period_bounds(fiscal_year, ptype, period_number)

        vat_return = self._find(owner, fiscal_year, ptype, period_number)
        if vat_return is not None and vat_return.status != VatReturnStatus.DRAFT.value:
            raise StateConflictError(
                "VatReturn", str(vat_return.id), vat_return.status, "regenerate"
            )

        summary = self._vat.summarize(owner, None, bounds)

        if vat_return is None:
            vat_return = VatReturn(
                user_id=owner,
                fiscal_year=fiscal_year,
                period_type=ptype.value,
                period_number=period_number,
                currency=self._currency,
                status=VatReturnStatus.DRAFT.value,
            )
            self.session.add(vat_return)
        vat_return.apply_amounts(
            summary.output_vat.minor_units, summary.input_vat.minor_units
        )
        self.session.flush()

        logger.info(
            "vat_return_generated",
            extra={
                "vat_return_id": str(vat_return.id),
                "fiscal_year": fiscal_year,
                "period_type": ptype.value,
                "period_number": period_number,
                "net_payable_cents": vat_return.net_payable_cents,
            },
        )
        self._emit(vat_return, "generate", None, VatReturnStatus.DRAFT.value)
        return VatReturnView.from_model(vat_return)

    def generate_for_year(self, user_id: UUID | str, fiscal_year: int) -> VatReturnView:
        """The annual return (Umsatzsteuererklaerung)."""
        return self.generate_for_period(user_id, fiscal_year, PeriodType.ANNUAL, 1)

    def submit(
        self,
        return_id: UUID | str,
        user_id: UUID | str,
        submission_date: date | None = None,
    ) -> VatReturnView:
        vat_return = self._load(return_id, user_id)
        if vat_return.status != VatReturnStatus.DRAFT.value:
            raise StateConflictError(
                "VatReturn", str(vat_return.id), vat_return.status, "submit"
            )
        vat_return.status = VatReturnStatus.SUBMITTED.value
        vat_return.submitted_on = submission_date or self._clock.today()
        self.session.flush()

        logger.info(
            "vat_return_submitted",
            extra={
                "vat_return_id": str(vat_return.id),
                "submitted_on": vat_return.submitted_on,
            },
        )
        self._emit(
            vat_return, "submit", VatReturnStatus.DRAFT.value, VatReturnStatus.SUBMITTED.value
        )
        return VatReturnView.from_model(vat_return)

    def get(self, return_id: UUID | str, user_id: UUID | str) -> VatReturnView:
        return VatReturnView.from_model(self._load(return_id, user_id))

    def list_by_year(self, user_id: UUID | str, fiscal_year: int) -> list[VatReturnView]:
        owner = coerce_uuid(user_id, "User")
        rows = self.session.execute(
            select(VatReturn)
            .where(VatReturn.user_id == owner)
            .where(VatReturn.fiscal_year == fiscal_year)
            .order_by(VatReturn.period_type, VatReturn.period_number)
        ).scalars()
        return [VatReturnView.from_model(row) for row in rows]

    def _load(self, return_id: UUID | str, user_id: UUID | str) -> VatReturn:
        owner = coerce_uuid(user_id, "User")
        key = coerce_uuid(return_id, "VatReturn")
        vat_return = self.session.get(VatReturn, key)
        if vat_return is None or vat_return.user_id != owner:
            raise NotFoundError("VatReturn", str(key))
        return vat_return

    def _find(
        self,
        owner: UUID,
        fiscal_year: int,
        period_type: PeriodType,
        period_number: int,
    ) -> VatReturn | None:
        return self.session.execute(
            select(VatReturn)
            .where(VatReturn.user_id == owner)
            .where(VatReturn.fiscal_year == fiscal_year)
            .where(VatReturn.period_type == period_type.value)
            .where(VatReturn.period_number == period_number)
        ).scalar_one_or_none()

    def _emit(
        self,
        vat_return: VatReturn,
        action: str,
        from_state: str | None,
        to_state: str,
    ) -> None:
        self._audit.emit(
            AuditEvent(
                action=action,
                entity_type="VatReturn",
                entity_id=str(vat_return.id),
                user_id=str(vat_return.user_id),
                occurred_at=self._clock.now(),
                from_state=from_state,
                to_state=to_state,
                payload={
                    "fiscal_year": vat_return.fiscal_year,
                    "period_type": vat_return.period_type,
                    "period_number": vat_return.period_number,
                    "output_vat_cents": vat_return.output_vat_cents,
                    "input_vat_cents": vat_return.input_vat_cents,
                    "net_payable_cents": vat_return.net_payable_cents,
                },
            )
        )
