"""
Settlement Service - 정산 수명주기 (생성 / 수정 / 확정 / 지급 / 삭제 / 비상 잠금 해제)

상태 전이: DRAFT -> CONFIRMED -> PAID, 그리고 관리자 전용 CONFIRMED -> DRAFT.
모든 전이는 감사로그와 같은 커밋으로 저장된다.
"""
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    DriverNotFoundError,
    DuplicateSettlementError,
    InvalidTransitionError,
    MissingParameterError,
    NotFoundException,
    PermissionDeniedError,
    SettlementLockedError,
    SettlementNotFoundError,
    ErrorCode,
)
from app.core.logging import get_logger, log_async_operation
from app.core.validation import TextSanitizer, YearMonthValidator
from app.db.models.audit_log import AuditLog, AuditActionType
from app.db.models.driver import Driver
from app.db.models.settlement import Settlement, SettlementSource, SettlementStatus
from app.db.models.user import User
from app.db.repositories import SettlementRepository, SqlAlchemyDispatchRecordSource
from app.domain.records import (
    BulkSettlementOutcome,
    SettlementCalculationResult,
    SettlementPreview,
)
from app.domain.services.settlement_calculator import SettlementCalculator

logger = get_logger(__name__)

WARNING_ALREADY_CONFIRMED = "이미 확정된 정산이 존재합니다"
WARNING_INACTIVE_DRIVER = "비활성화된 기사입니다"
WARNING_FUTURE_MONTH = "미래 월의 정산입니다"


class SettlementService:
    """정산 수명주기 관리: 정산 행은 이 서비스를 통해서만 바뀐다"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = SettlementRepository(db)
        self.calculator = SettlementCalculator(SqlAlchemyDispatchRecordSource(db))

    # ==================== 계산 ====================

    async def _calculate(
        self, driver_id: int, year_month: str, source: SettlementSource
    ) -> SettlementCalculationResult:
        if source == SettlementSource.CHARTER:
            return await self.calculator.calculate_monthly_charter_settlement(driver_id, year_month)
        return await self.calculator.calculate_monthly_settlement(driver_id, year_month)

    @staticmethod
    def _totals(result: SettlementCalculationResult) -> dict[str, Any]:
        return {
            "total_trips": result.total_trips,
            "total_base_fare": result.total_base_fare,
            "total_deductions": result.total_deductions,
            "total_additions": result.total_additions,
            "final_amount": result.final_amount,
        }

    @staticmethod
    def _audit(
        action: AuditActionType,
        actor: User | None,
        prior_status: SettlementStatus | None,
        new_status: SettlementStatus | None,
        reason: str | None = None,
        is_emergency: bool = False,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        return AuditLog(
            actor_user_id=actor.id if actor else None,
            actor_name=actor.name if actor else None,
            action=action,
            entity_type="Settlement",
            entity_id=0,  # 저장소가 커밋 직전에 채운다
            prior_status=prior_status.value if prior_status else None,
            new_status=new_status.value if new_status else None,
            reason=reason,
            is_emergency=is_emergency,
            details=details,
        )

    # ==================== 조회 ====================

    async def get_settlement(self, settlement_id: int) -> Settlement:
        settlement = await self.repository.find_by_id(settlement_id)
        if not settlement:
            raise SettlementNotFoundError(settlement_id)
        return settlement

    async def list_settlements(
        self,
        page: int = 1,
        page_size: int = 20,
        year_month: str | None = None,
        status: SettlementStatus | None = None,
        driver_id: int | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
    ) -> tuple[list[Settlement], int]:
        if year_month:
            YearMonthValidator.validate(year_month)
        page = max(1, page)
        page_size = max(1, min(page_size, settings.SETTLEMENT_PAGE_SIZE_MAX))
        search = TextSanitizer.sanitize(search, max_length=100) or None

        return await self.repository.list_settlements(
            year_month=year_month,
            status=status,
            driver_id=driver_id,
            search=search,
            sort_by=sort_by,
            descending=descending,
            offset=(page - 1) * page_size,
            limit=page_size,
        )

    async def preview_settlement(
        self,
        driver_id: int | None,
        year_month: str | None,
        source: SettlementSource = SettlementSource.TRIP,
    ) -> SettlementPreview:
        """저장 없이 계산만: 경고는 계산을 막지 않는다"""
        result = await self._calculate(driver_id, year_month, source)
        driver = await self.calculator.source.find_driver_by_id(driver_id)

        warnings: list[str] = []
        existing = await self.repository.find_by_driver_and_month(driver_id, year_month)
        if existing and existing.status in (SettlementStatus.CONFIRMED, SettlementStatus.PAID):
            warnings.append(WARNING_ALREADY_CONFIRMED)
        if not driver.is_active:
            warnings.append(WARNING_INACTIVE_DRIVER)
        if YearMonthValidator.is_future(year_month):
            warnings.append(WARNING_FUTURE_MONTH)

        return SettlementPreview(
            driver=driver,
            year_month=year_month,
            result=result,
            warnings=tuple(warnings),
            existing_settlement_id=existing.id if existing else None,
        )

    # ==================== 생성 / 수정 ====================

    async def create_settlement(
        self,
        driver_id: int | None,
        year_month: str | None,
        actor: User | None = None,
        source: SettlementSource = SettlementSource.TRIP,
        remarks: str | None = None,
    ) -> Settlement:
        """정산 생성: 같은 기사/같은 월에 이미 있으면 DuplicateSettlementError"""
        if driver_id is None:
            raise MissingParameterError("driver_id")
        YearMonthValidator.validate(year_month)

        existing = await self.repository.find_by_driver_and_month(driver_id, year_month)
        if existing:
            raise DuplicateSettlementError(driver_id, year_month, existing.id)

        result = await self._calculate(driver_id, year_month, source)

        settlement = Settlement(
            driver_id=driver_id,
            year_month=year_month,
            status=SettlementStatus.DRAFT,
            source=source,
            remarks=TextSanitizer.sanitize(remarks) or None,
            created_by=actor.id if actor else None,
            **self._totals(result),
        )
        audit = self._audit(
            AuditActionType.SETTLEMENT_CREATED,
            actor,
            prior_status=None,
            new_status=SettlementStatus.DRAFT,
            details={"year_month": year_month, "source": source.value},
        )
        settlement = await self.repository.create_settlement_with_items(settlement, result.items, audit)

        logger.info(
            "Settlement created",
            extra_data={
                "settlement_id": settlement.id,
                "driver_id": driver_id,
                "year_month": year_month,
                "final_amount": result.final_amount,
                "items": len(result.items),
            }
        )
        return settlement

    async def update_settlement(
        self,
        settlement_id: int,
        remarks: str | None = None,
        recalculate: bool = False,
        actor: User | None = None,
    ) -> Settlement:
        """DRAFT 정산의 비고 수정 / 재계산"""
        settlement = await self.get_settlement(settlement_id)
        if settlement.status != SettlementStatus.DRAFT:
            raise SettlementLockedError(settlement.id, settlement.status.value, "update")

        patch: dict[str, Any] = {}
        items = None
        if remarks is not None:
            patch["remarks"] = TextSanitizer.sanitize(remarks) or None
        if recalculate:
            result = await self._calculate(settlement.driver_id, settlement.year_month, settlement.source)
            patch.update(self._totals(result))
            items = result.items

        audit = self._audit(
            AuditActionType.SETTLEMENT_UPDATED,
            actor,
            prior_status=SettlementStatus.DRAFT,
            new_status=SettlementStatus.DRAFT,
            details={"recalculated": recalculate, "remarks_changed": remarks is not None},
        )
        settlement = await self.repository.update_settlement(settlement, patch, items=items, audit=audit)

        logger.info(
            "Settlement updated",
            extra_data={"settlement_id": settlement_id, "recalculated": recalculate}
        )
        return settlement

    # ==================== 상태 전이 ====================

    async def confirm_settlement(
        self,
        settlement_id: int,
        actor: User | None = None,
        remarks: str | None = None,
    ) -> Settlement:
        """DRAFT -> CONFIRMED. 확정 직전에 최신 기록으로 재계산한다."""
        settlement = await self.get_settlement(settlement_id)
        if settlement.status != SettlementStatus.DRAFT:
            raise InvalidTransitionError(
                settlement.id, settlement.status.value, SettlementStatus.CONFIRMED.value
            )

        result = await self._calculate(settlement.driver_id, settlement.year_month, settlement.source)
        previous_final = settlement.final_amount

        patch: dict[str, Any] = {
            "status": SettlementStatus.CONFIRMED,
            "confirmed_by": actor.id if actor else None,
            "confirmed_at": datetime.utcnow(),
            **self._totals(result),
        }
        if remarks is not None:
            patch["remarks"] = TextSanitizer.sanitize(remarks) or None

        audit = self._audit(
            AuditActionType.SETTLEMENT_CONFIRMED,
            actor,
            prior_status=SettlementStatus.DRAFT,
            new_status=SettlementStatus.CONFIRMED,
            details={"previous_final_amount": str(previous_final), "final_amount": str(result.final_amount)},
        )
        settlement = await self.repository.update_settlement(settlement, patch, items=result.items, audit=audit)

        logger.info(
            "Settlement confirmed",
            extra_data={
                "settlement_id": settlement_id,
                "confirmed_by": patch["confirmed_by"],
                "final_amount": result.final_amount,
            }
        )
        return settlement

    async def mark_paid(self, settlement_id: int, actor: User | None = None) -> Settlement:
        """CONFIRMED -> PAID"""
        settlement = await self.get_settlement(settlement_id)
        if settlement.status != SettlementStatus.CONFIRMED:
            raise InvalidTransitionError(
                settlement.id, settlement.status.value, SettlementStatus.PAID.value
            )

        audit = self._audit(
            AuditActionType.SETTLEMENT_PAID,
            actor,
            prior_status=SettlementStatus.CONFIRMED,
            new_status=SettlementStatus.PAID,
        )
        settlement = await self.repository.update_settlement(
            settlement,
            {"status": SettlementStatus.PAID, "paid_at": datetime.utcnow()},
            audit=audit,
        )

        logger.info("Settlement marked as paid", extra_data={"settlement_id": settlement_id})
        return settlement

    async def delete_settlement(self, settlement_id: int, actor: User | None = None) -> None:
        """DRAFT 정산만 삭제 가능: 항목은 함께 삭제된다"""
        settlement = await self.get_settlement(settlement_id)
        if settlement.status != SettlementStatus.DRAFT:
            raise SettlementLockedError(settlement.id, settlement.status.value, "delete")

        audit = self._audit(
            AuditActionType.SETTLEMENT_DELETED,
            actor,
            prior_status=SettlementStatus.DRAFT,
            new_status=None,
            details={"driver_id": settlement.driver_id, "year_month": settlement.year_month},
        )
        await self.repository.delete_settlement(settlement, audit=audit)

        logger.info(
            "Settlement deleted",
            extra_data={"settlement_id": settlement_id, "deleted_by": actor.id if actor else None}
        )

    async def emergency_unlock(
        self,
        settlement_id: int,
        actor_user_id: int,
        reason: str | None,
    ) -> Settlement:
        """관리자 전용 CONFIRMED -> DRAFT.

        권한 확인은 어떤 쓰기보다 먼저 한다: 거부되면 상태도 감사로그도 남지 않는다.
        감사로그와 상태 변경은 같은 커밋이다.
        """
        result = await self.db.execute(select(User).where(User.id == actor_user_id))
        actor = result.scalar_one_or_none()
        if actor is None or not actor.is_admin:
            logger.warning(
                "Emergency unlock denied",
                extra_data={"settlement_id": settlement_id, "actor_user_id": actor_user_id}
            )
            raise PermissionDeniedError("emergency_unlock", actor_user_id)

        reason = TextSanitizer.sanitize(reason)
        if not reason:
            raise MissingParameterError("reason")

        settlement = await self.get_settlement(settlement_id)
        if settlement.status != SettlementStatus.CONFIRMED:
            raise InvalidTransitionError(
                settlement.id, settlement.status.value, SettlementStatus.DRAFT.value
            )

        audit = self._audit(
            AuditActionType.SETTLEMENT_EMERGENCY_UNLOCK,
            actor,
            prior_status=SettlementStatus.CONFIRMED,
            new_status=SettlementStatus.DRAFT,
            reason=reason,
            is_emergency=True,
            details={
                "previous_confirmed_by": settlement.confirmed_by,
                "previous_confirmed_at": (
                    settlement.confirmed_at.isoformat() if settlement.confirmed_at else None
                ),
            },
        )
        settlement = await self.repository.update_settlement(
            settlement,
            {"status": SettlementStatus.DRAFT, "confirmed_by": None, "confirmed_at": None},
            audit=audit,
        )

        logger.warning(
            "Settlement emergency unlocked",
            extra_data={
                "settlement_id": settlement_id,
                "actor_user_id": actor.id,
                "reason": reason,
            }
        )
        return settlement

    # ==================== 일괄 생성 ====================

    @log_async_operation("bulk_create_settlements")
    async def bulk_create_settlements(
        self,
        year_month: str | None,
        driver_ids: Sequence[int] | None = None,
        actor: User | None = None,
        source: SettlementSource = SettlementSource.TRIP,
    ) -> BulkSettlementOutcome:
        """여러 기사의 정산을 한 번에 생성.

        기사별 실패(중복, 없는 기사 등)는 결과에 기록하고 다음 기사로 넘어간다.
        driver_ids가 없으면 활성 기사 전체가 대상이다.
        """
        YearMonthValidator.validate(year_month)

        if not driver_ids:
            result = await self.db.execute(
                select(Driver.id).where(Driver.is_active.is_(True)).order_by(Driver.id)
            )
            driver_ids = list(result.scalars().all())

        outcome = BulkSettlementOutcome(year_month=year_month)
        for driver_id in dict.fromkeys(driver_ids):
            try:
                settlement = await self.create_settlement(driver_id, year_month, actor=actor, source=source)
            except (DuplicateSettlementError, DriverNotFoundError) as e:
                outcome.failed.append({
                    "driver_id": driver_id,
                    "code": e.error_code.value,
                    "message": e.message,
                })
                continue
            outcome.created.append(settlement.id)

        logger.info(
            "Bulk settlement creation finished",
            extra_data={
                "year_month": year_month,
                "created": len(outcome.created),
                "failed": len(outcome.failed),
            }
        )
        return outcome

    # ==================== 내보내기 ====================

    async def list_for_export(
        self, year_month: str | None, driver_ids: Sequence[int] | None = None
    ) -> list[Settlement]:
        YearMonthValidator.validate(year_month)
        settlements = await self.repository.list_for_month(
            year_month, limit=settings.EXPORT_MAX_ROWS, driver_ids=driver_ids
        )
        if not settlements:
            raise NotFoundException("Settlements", year_month, ErrorCode.SETTLEMENT_NOT_FOUND)
        return settlements

