"""
Fare Quote Service - 용차 견적 계산

총 요금 = 기본료(요청 지역 중 최고가) + 착지 추가비 × (착지 수 - 1)
          + 지역 추가비 × (지역 수 - 1) + 수동 조정액

누락된 요율은 0으로 대체하지 않고 MissingRatesError로 알린다.
에러에는 등록된 요율만으로 계산한 잠정 견적이 함께 실려, 화면에서 요율 등록을 유도할 수 있다.
"""
from decimal import Decimal
from typing import Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ErrorCode,
    MissingParameterError,
    MissingRatesError,
    NotFoundException,
    ValidationException,
)
from app.core.logging import get_logger
from app.core.money import ZERO, to_decimal
from app.core.validation import FareRateKey
from app.db.models.fare_rate import FareType
from app.db.repositories import FareRateRepository
from app.domain.records import FareQuote, FareRateInfo, QuoteMetadata

logger = get_logger(__name__)


def unique_regions(regions: Sequence[str]) -> list[str]:
    """요율 키와 같은 규칙으로 정리한 뒤 순서 유지 중복 제거"""
    cleaned = (FareRateKey.region(region) for region in regions)
    return list(dict.fromkeys(region for region in cleaned if region))


def compose_quote(
    center_name: str,
    vehicle_type: str,
    regions: Sequence[str],
    stop_count: int,
    base_fares: Mapping[str, Decimal],
    stop_rate: FareRateInfo | None,
    extra_adjustment: Decimal = ZERO,
) -> FareQuote:
    """요율 조회 결과로 견적을 조합한다 (I/O 없음).

    base_fares에 없는 지역과 stop_rate가 None인 경우는 metadata에 누락으로 기록되고,
    해당 구성요소는 0으로 계산된다. 완성 여부는 FareQuote.is_complete로 확인한다.
    """
    missing_regions = tuple(region for region in regions if region not in base_fares)

    base_fare = ZERO
    base_region = None
    for region in regions:
        fare = base_fares.get(region)
        # 최고가 지역이 기본료: 동액이면 먼저 나온 지역
        if fare is not None and (base_region is None or fare > base_fare):
            base_fare = fare
            base_region = region

    stop_fare = ZERO
    region_fare = ZERO
    if stop_rate is not None:
        stop_fare = (stop_rate.extra_stop_fee or ZERO) * max(0, stop_count - 1)
        region_fare = (stop_rate.extra_region_fee or ZERO) * max(0, len(regions) - 1)

    extra_fare = to_decimal(extra_adjustment)

    return FareQuote(
        base_fare=base_fare,
        region_fare=region_fare,
        stop_fare=stop_fare,
        extra_fare=extra_fare,
        total_fare=base_fare + stop_fare + region_fare + extra_fare,
        metadata=QuoteMetadata(
            center_name=center_name,
            vehicle_type=vehicle_type,
            unique_regions=tuple(regions),
            stop_count=stop_count,
            base_region=base_region,
            missing_regions=missing_regions,
            missing_stop_fee=stop_rate is None,
        ),
    )


class FareQuoteService:
    """센터 요율표 기반 용차 견적"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = FareRateRepository(db)

    async def compute_quote(
        self,
        center_id: int | None,
        vehicle_type: str | None,
        regions: Sequence[str] | None,
        stop_count: int,
        extra_adjustment: Decimal = ZERO,
        negotiated_fare: Decimal | None = None,
    ) -> FareQuote:
        """
        견적 계산.

        Raises:
            MissingParameterError: 센터/차종 누락
            ValidationException: 지역 없음, 착지 수 < 지역 수, 음수 협의금액, 비활성 센터
            NotFoundException: 없는 센터
            MissingRatesError: BASIC 또는 STOP_FEE 요율 누락 (잠정 견적 포함)
        """
        if not center_id:
            raise MissingParameterError("center_id")
        vehicle_type = FareRateKey.vehicle_type(vehicle_type)
        if not vehicle_type:
            raise MissingParameterError("vehicle_type")

        distinct = unique_regions(regions or [])
        if not distinct:
            raise ValidationException("지역 정보는 필수입니다", field="regions")
        if stop_count < len(distinct):
            raise ValidationException(
                "착지 수는 지역 수보다 작을 수 없습니다",
                field="stop_count",
                details={"stop_count": stop_count, "region_count": len(distinct)},
            )

        center = await self.repository.find_center(center_id)
        if center is None:
            raise NotFoundException("Center", center_id, ErrorCode.CENTER_NOT_FOUND)
        if not center.is_active:
            raise ValidationException("비활성화된 센터입니다", field="center_id")

        if negotiated_fare is not None:
            return self._negotiated_quote(center.center_name, vehicle_type, distinct, stop_count, negotiated_fare)

        base_fares: dict[str, Decimal] = {}
        for region in distinct:
            rate = await self.repository.find_fare_rate(center_id, vehicle_type, region, FareType.BASIC)
            if rate is not None and rate.base_fare is not None:
                base_fares[region] = rate.base_fare

        stop_rate = await self.repository.find_fare_rate(center_id, vehicle_type, None, FareType.STOP_FEE)

        quote = compose_quote(
            center_name=center.center_name,
            vehicle_type=vehicle_type,
            regions=distinct,
            stop_count=stop_count,
            base_fares=base_fares,
            stop_rate=stop_rate,
            extra_adjustment=extra_adjustment,
        )

        if not quote.is_complete:
            logger.info(
                "Fare quote incomplete, missing rates",
                extra_data={
                    "center_id": center_id,
                    "vehicle_type": vehicle_type,
                    "missing_rates": quote.metadata.missing_rates,
                }
            )
            raise MissingRatesError(
                missing_regions=list(quote.metadata.missing_regions),
                center_name=center.center_name,
                vehicle_type=vehicle_type,
                missing_stop_fee=quote.metadata.missing_stop_fee,
                partial_quote=quote,
            )

        return quote

    @staticmethod
    def _negotiated_quote(
        center_name: str,
        vehicle_type: str,
        regions: list[str],
        stop_count: int,
        negotiated_fare: Decimal,
    ) -> FareQuote:
        """협의금액 견적: 요율 조회 없이 협의금액이 곧 총액"""
        amount = to_decimal(negotiated_fare)
        if amount < ZERO:
            raise ValidationException("협의금액은 0 이상이어야 합니다", field="negotiated_fare")
        return FareQuote(
            base_fare=ZERO,
            region_fare=ZERO,
            stop_fare=ZERO,
            extra_fare=ZERO,
            total_fare=amount,
            metadata=QuoteMetadata(
                center_name=center_name,
                vehicle_type=vehicle_type,
                unique_regions=tuple(regions),
                stop_count=stop_count,
                is_negotiated=True,
            ),
        )
