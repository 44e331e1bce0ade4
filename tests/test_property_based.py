"""
hypothesis 기반 속성 테스트: 정산 계산과 견적 조합의 불변식

1. 항목 금액 합계 == 최종 정산액 (공제는 음수 항목)
2. 최종 정산액 == 기본요금 - 공제 + 추가
3. SCHEDULED 운행은 어떤 합계에도 영향을 주지 않는다
4. 공제액이 없는 결행/대차는 기사 지급액의 10%/5%
5. 같은 입력이면 같은 결과 (멱등)
6. 견적 총액 == 구성요소 합계
"""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings as h_settings
from hypothesis.strategies import (
    booleans,
    composite,
    decimals,
    dictionaries,
    integers,
    lists,
    none,
    one_of,
    sampled_from,
    text,
)

from app.db.models.settlement import SettlementItemType
from app.domain.records import CharterRecord, FareRateInfo, TripRecord
from app.domain.services.fare_quote_service import compose_quote
from app.domain.services.settlement_calculator import (
    summarize_charter_records,
    summarize_trip_records,
)


# ============================================================================
# 전략 (strategies)
# ============================================================================

# 원 단위 + 소수 둘째 자리까지의 지급액
MONEY = decimals(min_value=Decimal("0"), max_value=Decimal("10000000"), places=2, allow_nan=False, allow_infinity=False)
OPTIONAL_DEDUCTION = one_of(none(), decimals(min_value=Decimal("0"), max_value=Decimal("100000"), places=2))
STATUSES = sampled_from(["SCHEDULED", "COMPLETED", "ABSENCE", "SUBSTITUTE"])
REGIONS = sampled_from(["강남", "서초", "송파", "마포", "용산", "성동"])

_BASE_DATE = datetime(2024, 1, 1, 6, 0)


@composite
def trip_records(draw):
    count = draw(integers(min_value=0, max_value=25))
    records = []
    for trip_id in range(1, count + 1):
        records.append(TripRecord(
            id=trip_id,
            date=_BASE_DATE + timedelta(days=draw(integers(min_value=0, max_value=30))),
            driver_id=1,
            status=draw(STATUSES),
            driver_fare=draw(MONEY),
            billing_fare=draw(MONEY),
            deduction_amount=draw(OPTIONAL_DEDUCTION),
            route_name=draw(one_of(none(), text(min_size=1, max_size=10))),
        ))
    return records


@composite
def charter_records(draw):
    count = draw(integers(min_value=0, max_value=15))
    return [
        CharterRecord(
            id=charter_id,
            date=_BASE_DATE + timedelta(days=draw(integers(min_value=0, max_value=30))),
            driver_id=1,
            center_name="이천센터",
            vehicle_type="1톤",
            driver_fare=draw(MONEY),
            total_fare=draw(MONEY),
            regions=tuple(draw(lists(REGIONS, min_size=1, max_size=3, unique=True))),
            extra_fare=draw(one_of(none(), MONEY)),
            is_negotiated=draw(booleans()),
        )
        for charter_id in range(1, count + 1)
    ]


# ============================================================================
# 정산 계산 불변식
# ============================================================================

@pytest.mark.unit
@given(records=trip_records())
@h_settings(max_examples=200)
def test_trip_items_sum_to_final_amount(records):
    result = summarize_trip_records(records)
    assert sum((item.amount for item in result.items), Decimal("0")) == result.final_amount
    assert result.final_amount == result.total_base_fare - result.total_deductions + result.total_additions
    assert result.total_additions == Decimal("0")


@pytest.mark.unit
@given(records=charter_records())
@h_settings(max_examples=200)
def test_charter_items_sum_to_final_amount(records):
    result = summarize_charter_records(records)
    assert sum((item.amount for item in result.items), Decimal("0")) == result.final_amount
    assert result.total_deductions == Decimal("0")
    assert result.total_trips == len(records)


@pytest.mark.unit
@given(records=trip_records())
def test_scheduled_trips_have_no_effect(records):
    without_scheduled = [r for r in records if r.status != "SCHEDULED"]
    assert summarize_trip_records(records) == summarize_trip_records(without_scheduled)


@pytest.mark.unit
@given(records=trip_records())
def test_deductions_are_negative_items(records):
    result = summarize_trip_records(records)
    deductions = [item for item in result.items if item.type == SettlementItemType.DEDUCTION]
    assert all(item.amount <= 0 for item in deductions)
    assert -sum((item.amount for item in deductions), Decimal("0")) == result.total_deductions


@pytest.mark.unit
@given(fare=MONEY, status=sampled_from(["ABSENCE", "SUBSTITUTE"]))
def test_default_deduction_rates(fare, status):
    record = TripRecord(
        id=1, date=_BASE_DATE, driver_id=1, status=status, driver_fare=fare, billing_fare=fare
    )
    rate = Decimal("0.1") if status == "ABSENCE" else Decimal("0.05")
    result = summarize_trip_records([record])
    assert result.total_deductions == fare * rate
    assert result.final_amount == fare - fare * rate


@pytest.mark.unit
@given(records=trip_records())
def test_calculation_is_idempotent(records):
    assert summarize_trip_records(records) == summarize_trip_records(list(records))


@pytest.mark.unit
@given(records=trip_records())
def test_items_ordered_by_date(records):
    dates = [item.date for item in summarize_trip_records(records).items]
    assert dates == sorted(dates)


# ============================================================================
# 견적 조합 불변식
# ============================================================================

@pytest.mark.unit
@given(
    regions=lists(REGIONS, min_size=1, max_size=5, unique=True),
    extra_stops=integers(min_value=0, max_value=10),
    fares=dictionaries(REGIONS, MONEY),
    stop_fee=MONEY,
    region_fee=MONEY,
    adjustment=decimals(min_value=Decimal("-50000"), max_value=Decimal("50000"), places=0),
)
def test_quote_total_is_sum_of_components(regions, extra_stops, fares, stop_fee, region_fee, adjustment):
    stop_rate = FareRateInfo(
        id=1, center_id=1, vehicle_type="1톤", fare_type="STOP_FEE",
        extra_stop_fee=stop_fee, extra_region_fee=region_fee,
    )
    stop_count = len(regions) + extra_stops
    quote = compose_quote("이천센터", "1톤", regions, stop_count, fares, stop_rate, adjustment)

    assert quote.total_fare == quote.base_fare + quote.stop_fare + quote.region_fare + quote.extra_fare
    assert quote.stop_fare == stop_fee * (stop_count - 1)
    assert quote.region_fare == region_fee * (len(regions) - 1)
    available = [fares[r] for r in regions if r in fares]
    assert quote.base_fare == (max(available) if available else Decimal("0"))
    assert set(quote.metadata.missing_regions) == {r for r in regions if r not in fares}
    assert quote.is_complete == all(r in fares for r in regions)
