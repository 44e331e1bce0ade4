"""
Domain value types: 계산기 입력/출력용 불변 데이터

저장소 계층이 ORM 행을 이 타입으로 변환해 넘겨주며,
계산기는 DB 세션을 직접 들고 있지 않는다.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.core.money import decimal_to_str
from app.db.models.settlement import SettlementItemType


@dataclass(frozen=True)
class DriverInfo:
    id: int
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class TripRecord:
    """노선 운행 1건 (읽기 전용 입력)"""
    id: int
    date: datetime
    driver_id: int
    status: str
    driver_fare: Decimal
    billing_fare: Decimal
    route_name: str | None = None
    vehicle_id: int | None = None
    deduction_amount: Decimal | None = None
    absence_reason: str | None = None
    substitute_driver_id: int | None = None
    substitute_driver_name: str | None = None
    substitute_fare: Decimal | None = None
    extra_fare: Decimal | None = None
    is_negotiated: bool = False
    remarks: str | None = None


@dataclass(frozen=True)
class CharterRecord:
    """용차 1건 (읽기 전용 입력)"""
    id: int
    date: datetime
    driver_id: int
    center_name: str
    vehicle_type: str
    driver_fare: Decimal
    total_fare: Decimal
    regions: tuple[str, ...] = ()
    extra_fare: Decimal | None = None
    is_negotiated: bool = False
    negotiated_fare: Decimal | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SettlementItemDetail:
    """정산 항목 1줄: 공제는 음수"""
    type: SettlementItemType
    description: str
    amount: Decimal
    date: datetime
    trip_id: int | None = None
    charter_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "amount": decimal_to_str(self.amount),
            "date": self.date.isoformat(),
            "trip_id": self.trip_id,
            "charter_id": self.charter_id,
        }


@dataclass(frozen=True)
class SettlementCalculationResult:
    total_trips: int
    total_base_fare: Decimal
    total_deductions: Decimal
    total_additions: Decimal
    final_amount: Decimal
    items: tuple[SettlementItemDetail, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_trips": self.total_trips,
            "total_base_fare": decimal_to_str(self.total_base_fare),
            "total_deductions": decimal_to_str(self.total_deductions),
            "total_additions": decimal_to_str(self.total_additions),
            "final_amount": decimal_to_str(self.final_amount),
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True)
class SettlementPreview:
    """미리보기 결과: 저장하지 않는다"""
    driver: DriverInfo
    year_month: str
    result: SettlementCalculationResult
    warnings: tuple[str, ...] = ()
    existing_settlement_id: int | None = None

    @property
    def can_confirm(self) -> bool:
        return not self.warnings and len(self.result.items) > 0

    def to_dict(self) -> dict[str, Any]:
        payload = self.result.to_dict()
        payload.update({
            "driver_id": self.driver.id,
            "driver_name": self.driver.name,
            "year_month": self.year_month,
            "warnings": list(self.warnings),
            "can_confirm": self.can_confirm,
            "existing_settlement_id": self.existing_settlement_id,
        })
        return payload


@dataclass(frozen=True)
class FareRateInfo:
    id: int
    center_id: int
    vehicle_type: str
    fare_type: str
    region: str | None = None
    base_fare: Decimal | None = None
    extra_stop_fee: Decimal | None = None
    extra_region_fee: Decimal | None = None


@dataclass(frozen=True)
class QuoteMetadata:
    center_name: str
    vehicle_type: str
    unique_regions: tuple[str, ...]
    stop_count: int
    base_region: str | None = None
    missing_regions: tuple[str, ...] = ()
    missing_stop_fee: bool = False
    is_negotiated: bool = False

    @property
    def missing_rates(self) -> list[str]:
        """누락된 요율 조합 라벨 ('BASIC:강남', 'STOP_FEE')"""
        labels = [f"BASIC:{region}" for region in self.missing_regions]
        if self.missing_stop_fee:
            labels.append("STOP_FEE")
        return labels

    def to_dict(self) -> dict[str, Any]:
        return {
            "center_name": self.center_name,
            "vehicle_type": self.vehicle_type,
            "unique_regions": list(self.unique_regions),
            "stop_count": self.stop_count,
            "base_region": self.base_region,
            "missing_regions": list(self.missing_regions),
            "missing_stop_fee": self.missing_stop_fee,
            "missing_rates": self.missing_rates,
            "is_negotiated": self.is_negotiated,
        }


@dataclass(frozen=True)
class FareQuote:
    """용차 견적: 저장되지 않는 계산 결과"""
    base_fare: Decimal
    region_fare: Decimal
    stop_fare: Decimal
    extra_fare: Decimal
    total_fare: Decimal
    metadata: QuoteMetadata

    @property
    def is_complete(self) -> bool:
        return not self.metadata.missing_rates

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_fare": decimal_to_str(self.base_fare),
            "region_fare": decimal_to_str(self.region_fare),
            "stop_fare": decimal_to_str(self.stop_fare),
            "extra_fare": decimal_to_str(self.extra_fare),
            "total_fare": decimal_to_str(self.total_fare),
            "is_complete": self.is_complete,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class BulkSettlementOutcome:
    """일괄 생성 결과: 기사별 성공/실패"""
    year_month: str
    created: list[int] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "year_month": self.year_month,
            "created_count": len(self.created),
            "failed_count": len(self.failed),
            "created": list(self.created),
            "failed": list(self.failed),
        }
