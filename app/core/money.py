"""
금액 유틸리티: Decimal 전용

정산/요율 계산은 전부 Decimal로 수행하며, 계산 중간에는 반올림하지 않는다.
반올림은 화면/엑셀 표시 경계에서만 ROUND_HALF_UP(원 단위)으로 한다.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable

ZERO = Decimal("0")
WON = Decimal("1")

# 결행 공제율 10%, 대차 공제율 5%
ABSENCE_DEDUCTION_RATE = Decimal("0.1")
SUBSTITUTE_DEDUCTION_RATE = Decimal("0.05")


def to_decimal(value: Any) -> Decimal:
    """Coerce incoming values to Decimal safely.

    float는 str()을 거쳐 변환해 이진 부동소수 오차가 섞이지 않게 한다.
    None이나 숫자가 아닌 값은 ValueError: 0으로 대체하지 않는다.
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise ValueError(f"Not a monetary value: {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Not a monetary value: {value!r}") from e


def optional_decimal(value: Any) -> Decimal | None:
    """None은 그대로 두고 나머지는 to_decimal"""
    if value is None:
        return None
    return to_decimal(value)


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    """amount × rate: 반올림 없음"""
    return to_decimal(amount) * rate


def sum_money(values: Iterable[Decimal]) -> Decimal:
    return sum((to_decimal(v) for v in values), ZERO)


def decimal_to_str(value: Decimal) -> str:
    """JSON 응답용 문자열: 지수 표기 없이, 불필요한 0 제거.

    Decimal("300000.0000") -> "300000", Decimal("33333.30") -> "33333.3"
    """
    normalized = to_decimal(value).normalize()
    if normalized == ZERO:
        return "0"
    return format(normalized, "f")


def round_won(value: Decimal) -> Decimal:
    """표시용 원 단위 반올림 (ROUND_HALF_UP)"""
    return to_decimal(value).quantize(WON, rounding=ROUND_HALF_UP)
