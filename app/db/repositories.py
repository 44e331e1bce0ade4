"""
Repositories - 정산 계산기와 수명주기 서비스가 사용하는 데이터 접근 계층

계산기는 DispatchRecordSource 인터페이스만 알고, 실제 구현은 AsyncSession 위에서 동작한다.
모든 쓰기 메서드는 하나의 commit으로 끝나며, 실패 시 rollback 후 PersistenceError로 전파된다.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.exceptions import DuplicateSettlementError, PersistenceError
from app.core.logging import get_logger
from app.core.money import to_decimal, optional_decimal
from app.db.models.audit_log import AuditLog
from app.db.models.charter_request import CharterRequest, CharterDestination
from app.db.models.driver import Driver
from app.db.models.fare_rate import FareRate, FareType
from app.db.models.loading_point import LoadingPoint
from app.db.models.settlement import Settlement, SettlementItem, SettlementStatus
from app.db.models.trip import Trip
from app.domain.records import (
    CharterRecord,
    DriverInfo,
    FareRateInfo,
    SettlementItemDetail,
    TripRecord,
)

logger = get_logger(__name__)


class DispatchRecordSource(ABC):
    """정산 계산기의 입력 원천 (기사 + 기간 내 운행/용차 기록)"""

    @abstractmethod
    async def find_driver_by_id(self, driver_id: int) -> DriverInfo | None:
        ...

    @abstractmethod
    async def find_trip_records(
        self, driver_id: int, start: datetime, end: datetime
    ) -> Sequence[TripRecord]:
        """기간 내 운행 기록: 날짜 오름차순"""

    @abstractmethod
    async def find_charter_records(
        self, driver_id: int, start: datetime, end: datetime
    ) -> Sequence[CharterRecord]:
        """기간 내 용차 기록: 날짜 오름차순"""


class SqlAlchemyDispatchRecordSource(DispatchRecordSource):
    """AsyncSession 기반 구현: ORM 행을 불변 레코드로 변환해 돌려준다"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_driver_by_id(self, driver_id: int) -> DriverInfo | None:
        result = await self.db.execute(select(Driver).where(Driver.id == driver_id))
        driver = result.scalar_one_or_none()
        if not driver:
            return None
        return DriverInfo(id=driver.id, name=driver.name, is_active=bool(driver.is_active))

    async def find_trip_records(
        self, driver_id: int, start: datetime, end: datetime
    ) -> list[TripRecord]:
        substitute = aliased(Driver)
        result = await self.db.execute(
            select(Trip, substitute.name)
            .outerjoin(substitute, Trip.substitute_driver_id == substitute.id)
            .where(
                Trip.driver_id == driver_id,
                Trip.date >= start,
                Trip.date <= end,
            )
            .order_by(Trip.date.asc(), Trip.id.asc())
        )
        return [self._to_trip_record(trip, sub_name) for trip, sub_name in result.all()]

    async def find_charter_records(
        self, driver_id: int, start: datetime, end: datetime
    ) -> list[CharterRecord]:
        result = await self.db.execute(
            select(CharterRequest, LoadingPoint.center_name)
            .outerjoin(LoadingPoint, CharterRequest.center_id == LoadingPoint.id)
            .where(
                CharterRequest.driver_id == driver_id,
                CharterRequest.date >= start,
                CharterRequest.date <= end,
            )
            .order_by(CharterRequest.date.asc(), CharterRequest.id.asc())
        )
        rows = result.all()
        regions_by_request = await self._load_regions([charter.id for charter, _ in rows])

        return [
            CharterRecord(
                id=charter.id,
                date=charter.date,
                driver_id=charter.driver_id,
                center_name=center_name or "",
                vehicle_type=charter.vehicle_type,
                driver_fare=to_decimal(charter.driver_fare),
                total_fare=to_decimal(charter.total_fare),
                regions=tuple(regions_by_request.get(charter.id, ())),
                extra_fare=optional_decimal(charter.extra_fare),
                is_negotiated=bool(charter.is_negotiated),
                negotiated_fare=optional_decimal(charter.negotiated_fare),
                notes=charter.notes,
            )
            for charter, center_name in rows
        ]

    async def _load_regions(self, request_ids: list[int]) -> dict[int, list[str]]:
        if not request_ids:
            return {}
        result = await self.db.execute(
            select(CharterDestination.request_id, CharterDestination.region)
            .where(CharterDestination.request_id.in_(request_ids))
            .order_by(CharterDestination.request_id, CharterDestination.order)
        )
        regions: dict[int, list[str]] = {}
        for request_id, region in result.all():
            regions.setdefault(request_id, []).append(region)
        return regions

    @staticmethod
    def _to_trip_record(trip: Trip, substitute_name: str | None) -> TripRecord:
        status = trip.status.value if hasattr(trip.status, "value") else str(trip.status)
        return TripRecord(
            id=trip.id,
            date=trip.date,
            driver_id=trip.driver_id,
            status=status,
            driver_fare=to_decimal(trip.driver_fare),
            billing_fare=to_decimal(trip.billing_fare),
            route_name=trip.route_name,
            vehicle_id=trip.vehicle_id,
            deduction_amount=optional_decimal(trip.deduction_amount),
            absence_reason=trip.absence_reason,
            substitute_driver_id=trip.substitute_driver_id,
            substitute_driver_name=substitute_name,
            substitute_fare=optional_decimal(trip.substitute_fare),
            extra_fare=optional_decimal(trip.extra_fare),
            is_negotiated=bool(trip.is_negotiated),
            remarks=trip.remarks,
        )


class SettlementRepository:
    """정산/정산항목/감사로그 영속화: 정산 행은 이 클래스만 쓴다"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, settlement_id: int) -> Settlement | None:
        result = await self.db.execute(
            select(Settlement).where(Settlement.id == settlement_id)
        )
        return result.scalar_one_or_none()

    async def find_by_driver_and_month(self, driver_id: int, year_month: str) -> Settlement | None:
        result = await self.db.execute(
            select(Settlement).where(
                Settlement.driver_id == driver_id,
                Settlement.year_month == year_month,
            )
        )
        return result.scalar_one_or_none()

    async def list_settlements(
        self,
        year_month: str | None = None,
        status: SettlementStatus | None = None,
        driver_id: int | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Settlement], int]:
        """필터 + 정렬 + 페이지네이션. (목록, 전체 건수)를 돌려준다."""
        conditions = []
        if year_month:
            conditions.append(Settlement.year_month == year_month)
        if status:
            conditions.append(Settlement.status == status)
        if driver_id:
            conditions.append(Settlement.driver_id == driver_id)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                Settlement.driver_id.in_(
                    select(Driver.id).where(
                        or_(Driver.name.ilike(pattern), Driver.phone.ilike(pattern))
                    )
                )
            )

        sort_columns = {
            "created_at": Settlement.created_at,
            "year_month": Settlement.year_month,
            "final_amount": Settlement.final_amount,
            "status": Settlement.status,
        }
        sort_column = sort_columns.get(sort_by, Settlement.created_at)
        order = sort_column.desc() if descending else sort_column.asc()

        count_result = await self.db.execute(
            select(func.count(Settlement.id)).where(*conditions)
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(Settlement)
            .where(*conditions)
            .order_by(order, Settlement.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_for_month(
        self, year_month: str, limit: int, driver_ids: Sequence[int] | None = None
    ) -> list[Settlement]:
        conditions = [Settlement.year_month == year_month]
        if driver_ids:
            conditions.append(Settlement.driver_id.in_(list(driver_ids)))
        result = await self.db.execute(
            select(Settlement)
            .where(*conditions)
            .order_by(Settlement.created_at.asc(), Settlement.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def create_settlement_with_items(
        self,
        settlement: Settlement,
        items: Sequence[SettlementItemDetail],
        audit: AuditLog | None = None,
    ) -> Settlement:
        """정산 + 항목 (+ 감사로그)을 하나의 커밋으로 저장"""
        driver_id, year_month = settlement.driver_id, settlement.year_month
        settlement.items = [self._to_item_row(item) for item in items]
        self.db.add(settlement)
        try:
            await self.db.flush()
            if audit is not None:
                audit.entity_id = settlement.id
                self.db.add(audit)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            existing = await self.find_by_driver_and_month(driver_id, year_month)
            if existing is not None:
                raise DuplicateSettlementError(driver_id, year_month, existing.id) from e
            raise PersistenceError("create_settlement", {"reason": str(e.orig)}) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Settlement write failed, rolled back",
                extra_data={"operation": "create_settlement", "error": str(e)},
                exc_info=True,
            )
            raise PersistenceError("create_settlement", {"reason": str(e)}) from e

        await self.db.refresh(settlement, attribute_names=["items", "driver"])
        return settlement

    async def update_settlement(
        self,
        settlement: Settlement,
        patch: dict[str, Any],
        items: Sequence[SettlementItemDetail] | None = None,
        audit: AuditLog | None = None,
    ) -> Settlement:
        """상태/합계 변경 + (선택) 항목 교체 + (선택) 감사로그를 하나의 커밋으로 저장.

        상태 변경과 감사로그는 같은 트랜잭션이므로, 감사로그 쓰기가 실패하면
        상태도 바뀌지 않는다.
        """
        settlement_id = settlement.id
        try:
            for key, value in patch.items():
                setattr(settlement, key, value)
            if items is not None:
                settlement.items.clear()
                await self.db.flush()
                settlement.items.extend(self._to_item_row(item) for item in items)
            if audit is not None:
                audit.entity_id = settlement_id
                self.db.add(audit)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Settlement write failed, rolled back",
                extra_data={"operation": "update_settlement", "error": str(e)},
                exc_info=True,
            )
            raise PersistenceError("update_settlement", {"settlement_id": settlement_id, "reason": str(e)}) from e

        await self.db.refresh(settlement, attribute_names=["items"])
        return settlement

    async def delete_settlement(self, settlement: Settlement, audit: AuditLog | None = None) -> None:
        settlement_id = settlement.id
        try:
            # 항목은 cascade="all, delete-orphan"으로 함께 삭제된다
            await self.db.delete(settlement)
            if audit is not None:
                audit.entity_id = settlement_id
                self.db.add(audit)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Settlement write failed, rolled back",
                extra_data={"operation": "delete_settlement", "error": str(e)},
                exc_info=True,
            )
            raise PersistenceError("delete_settlement", {"settlement_id": settlement_id, "reason": str(e)}) from e

    @staticmethod
    def _to_item_row(item: SettlementItemDetail) -> SettlementItem:
        return SettlementItem(
            type=item.type,
            description=item.description,
            amount=item.amount,
            date=item.date,
            trip_id=item.trip_id,
            charter_id=item.charter_id,
        )


class FareRateRepository:
    """요율 조회/등록: 조회는 잠금 없이 항상 최신 커밋 값을 읽는다"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_center(self, center_id: int) -> LoadingPoint | None:
        result = await self.db.execute(select(LoadingPoint).where(LoadingPoint.id == center_id))
        return result.scalar_one_or_none()

    async def find_fare_rate(
        self,
        center_id: int,
        vehicle_type: str,
        region: str | None,
        fare_type: FareType,
    ) -> FareRateInfo | None:
        """활성 요율 1건. STOP_FEE는 region=None으로 조회한다."""
        conditions = [
            FareRate.center_id == center_id,
            FareRate.vehicle_type == vehicle_type,
            FareRate.fare_type == fare_type,
            FareRate.is_active.is_(True),
        ]
        if region is None:
            conditions.append(FareRate.region.is_(None))
        else:
            conditions.append(FareRate.region == region)

        result = await self.db.execute(
            select(FareRate).where(*conditions).order_by(FareRate.id.desc()).limit(1)
        )
        rate = result.scalar_one_or_none()
        return self.to_info(rate) if rate else None

    async def find_row_by_key(
        self,
        center_id: int,
        vehicle_type: str,
        region: str | None,
        fare_type: FareType,
    ) -> FareRate | None:
        """활성 여부와 무관하게 고유 키로 조회 (upsert용)"""
        conditions = [
            FareRate.center_id == center_id,
            FareRate.vehicle_type == vehicle_type,
            FareRate.fare_type == fare_type,
        ]
        if region is None:
            conditions.append(FareRate.region.is_(None))
        else:
            conditions.append(FareRate.region == region)
        result = await self.db.execute(select(FareRate).where(*conditions).limit(1))
        return result.scalar_one_or_none()

    async def find_row_by_id(self, rate_id: int) -> FareRate | None:
        result = await self.db.execute(select(FareRate).where(FareRate.id == rate_id))
        return result.scalar_one_or_none()

    async def list_rates(
        self,
        center_id: int | None = None,
        vehicle_type: str | None = None,
        include_inactive: bool = False,
    ) -> list[FareRate]:
        conditions = []
        if center_id:
            conditions.append(FareRate.center_id == center_id)
        if vehicle_type:
            conditions.append(FareRate.vehicle_type == vehicle_type)
        if not include_inactive:
            conditions.append(FareRate.is_active.is_(True))
        result = await self.db.execute(
            select(FareRate)
            .where(*conditions)
            .order_by(FareRate.center_id, FareRate.vehicle_type, FareRate.fare_type, FareRate.region)
        )
        return list(result.scalars().all())

    async def save(self, rate: FareRate, operation: str) -> FareRate:
        self.db.add(rate)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(operation, {"reason": str(e)}) from e
        await self.db.refresh(rate)
        return rate

    @staticmethod
    def to_info(rate: FareRate) -> FareRateInfo:
        fare_type = rate.fare_type.value if hasattr(rate.fare_type, "value") else str(rate.fare_type)
        return FareRateInfo(
            id=rate.id,
            center_id=rate.center_id,
            vehicle_type=rate.vehicle_type,
            fare_type=fare_type,
            region=rate.region,
            base_fare=optional_decimal(rate.base_fare),
            extra_stop_fee=optional_decimal(rate.extra_stop_fee),
            extra_region_fee=optional_decimal(rate.extra_region_fee),
        )
