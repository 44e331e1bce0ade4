"""
Settlement Calculator - 기사 월 정산 계산

(운행/용차 기록, 기간) -> (합계, 항목) 순수 계산.
저장소에는 절대 쓰지 않으며, 금액은 전부 Decimal로 중간 반올림 없이 계산한다.

두 진입점(노선 운행 / 용차)이 같은 SettlementAccumulator를 공유한다.
노선 운행에는 추가금 규칙이 없고, 용차에는 공제 규칙이 없다: 서로 다른 업무 규칙이다.
"""
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from app.core.exceptions import DriverNotFoundError, MissingParameterError
from app.core.logging import get_logger
from app.core.money import (
    ABSENCE_DEDUCTION_RATE,
    SUBSTITUTE_DEDUCTION_RATE,
    ZERO,
    percent_of,
)
from app.core.validation import YearMonthValidator
from app.db.models.settlement import SettlementItemType
from app.db.models.trip import TripStatus
from app.db.repositories import DispatchRecordSource
from app.domain.records import (
    CharterRecord,
    DriverInfo,
    SettlementCalculationResult,
    SettlementItemDetail,
    TripRecord,
)

logger = get_logger(__name__)


class SettlementAccumulator:
    """합계와 항목을 함께 쌓는다: 항목 합계 == 최종 금액이 항상 성립한다"""

    def __init__(self) -> None:
        self.total_trips = 0
        self.total_base_fare = ZERO
        self.total_deductions = ZERO
        self.total_additions = ZERO
        self.items: list[SettlementItemDetail] = []

    def count_trip(self) -> None:
        self.total_trips += 1

    def add_trip(
        self,
        amount: Decimal,
        description: str,
        date: datetime,
        trip_id: int | None = None,
        charter_id: int | None = None,
    ) -> None:
        self.total_base_fare += amount
        self.items.append(SettlementItemDetail(
            type=SettlementItemType.TRIP,
            description=description,
            amount=amount,
            date=date,
            trip_id=trip_id,
            charter_id=charter_id,
        ))

    def add_deduction(
        self,
        magnitude: Decimal,
        description: str,
        date: datetime,
        trip_id: int | None = None,
    ) -> None:
        # 공제 항목은 음수로 저장, 합계에는 크기만 더한다
        self.total_deductions += magnitude
        self.items.append(SettlementItemDetail(
            type=SettlementItemType.DEDUCTION,
            description=description,
            amount=-magnitude,
            date=date,
            trip_id=trip_id,
        ))

    def add_addition(
        self,
        amount: Decimal,
        description: str,
        date: datetime,
        charter_id: int | None = None,
    ) -> None:
        self.total_additions += amount
        self.items.append(SettlementItemDetail(
            type=SettlementItemType.ADDITION,
            description=description,
            amount=amount,
            date=date,
            charter_id=charter_id,
        ))

    def result(self) -> SettlementCalculationResult:
        return SettlementCalculationResult(
            total_trips=self.total_trips,
            total_base_fare=self.total_base_fare,
            total_deductions=self.total_deductions,
            total_additions=self.total_additions,
            final_amount=self.total_base_fare - self.total_deductions + self.total_additions,
            items=tuple(self.items),
        )


def _by_date(records: Iterable) -> list:
    # 안정 정렬: 같은 날짜는 입력 순서 유지
    return sorted(records, key=lambda record: record.date)


def summarize_trip_records(records: Iterable[TripRecord]) -> SettlementCalculationResult:
    """노선 운행 기록 -> 정산 결과"""
    acc = SettlementAccumulator()

    for record in _by_date(records):
        status = record.status
        if status == TripStatus.SCHEDULED.value:
            continue

        acc.count_trip()
        route = record.route_name or "커스텀노선"

        if status == TripStatus.COMPLETED.value:
            acc.add_trip(record.driver_fare, f"정상운행: {route}", record.date, trip_id=record.id)

        elif status == TripStatus.ABSENCE.value:
            acc.add_trip(record.driver_fare, f"결행운행: {route}", record.date, trip_id=record.id)
            deduction = record.deduction_amount
            if deduction is None:
                deduction = percent_of(record.driver_fare, ABSENCE_DEDUCTION_RATE)
            acc.add_deduction(
                deduction,
                f"결행공제: {record.absence_reason or '사유미기재'}",
                record.date,
                trip_id=record.id,
            )

        elif status == TripStatus.SUBSTITUTE.value:
            acc.add_trip(record.driver_fare, f"대차운행: {route}", record.date, trip_id=record.id)
            deduction = record.deduction_amount
            if deduction is None:
                deduction = percent_of(record.driver_fare, SUBSTITUTE_DEDUCTION_RATE)
            acc.add_deduction(
                deduction,
                f"대차공제: {record.substitute_driver_name or '대차기사'}",
                record.date,
                trip_id=record.id,
            )

        else:
            logger.warning(
                "Unknown trip status skipped in settlement",
                extra_data={"trip_id": record.id, "status": status},
            )

    return acc.result()


def summarize_charter_records(records: Iterable[CharterRecord]) -> SettlementCalculationResult:
    """용차 기록 -> 정산 결과 (공제 없음, 협의금액/추가요금은 ADDITION 항목)"""
    acc = SettlementAccumulator()

    for record in _by_date(records):
        acc.count_trip()
        label = f"{record.center_name} / {record.vehicle_type} / {' → '.join(record.regions)}"
        acc.add_trip(record.driver_fare, f"용차: {label}", record.date, charter_id=record.id)

        if record.is_negotiated:
            # 정보성 항목: 금액 0
            reason = record.notes or "사유 미기재"
            acc.add_addition(ZERO, f"협의금액 적용: {reason}", record.date, charter_id=record.id)

        if record.extra_fare is not None and record.extra_fare > ZERO:
            reason = record.notes or "대기/회송/수작업 등"
            acc.add_addition(record.extra_fare, f"추가요금: {reason}", record.date, charter_id=record.id)

    return acc.result()


class SettlementCalculator:
    """기사 + 정산 월 -> 정산 결과. 기록 원천은 주입받는다."""

    def __init__(self, source: DispatchRecordSource):
        self.source = source

    async def calculate_monthly_settlement(
        self, driver_id: int | None, year_month: str | None
    ) -> SettlementCalculationResult:
        """노선 운행 기반 월 정산"""
        _, start, end = await self._resolve(driver_id, year_month)
        records = await self.source.find_trip_records(driver_id, start, end)
        return summarize_trip_records(records)

    async def calculate_monthly_charter_settlement(
        self, driver_id: int | None, year_month: str | None
    ) -> SettlementCalculationResult:
        """용차 기반 월 정산"""
        _, start, end = await self._resolve(driver_id, year_month)
        records = await self.source.find_charter_records(driver_id, start, end)
        return summarize_charter_records(records)

    async def _resolve(
        self, driver_id: int | None, year_month: str | None
    ) -> tuple[DriverInfo, datetime, datetime]:
        if driver_id is None or driver_id == "":
            raise MissingParameterError("driver_id")
        YearMonthValidator.validate(year_month)

        driver = await self.source.find_driver_by_id(driver_id)
        if driver is None:
            raise DriverNotFoundError(driver_id)

        start, end = YearMonthValidator.month_range(year_month)
        return driver, start, end
