"""
Input Validation Utilities

Provides validation for user inputs including:
- Year-month keys ("YYYY-MM") and their calendar ranges
- Text sanitization for remarks / audit reasons
- Monetary amounts for fare rate registration
"""
import calendar
import re
from datetime import date, datetime
from decimal import Decimal

from app.core.exceptions import InvalidFormatError, MissingParameterError
from app.core.money import to_decimal


class ValidationPatterns:
    """Regex patterns for validation"""

    # 정산 월 키: ASCII 4자리 연도 + 2자리 월, 앞뒤 공백/개행 불가 (fullmatch로 사용)
    YEAR_MONTH = re.compile(r"[0-9]{4}-[0-9]{2}")


class YearMonthValidator:
    """정산 월("YYYY-MM") 검증 및 기간 계산"""

    EXPECTED = "YYYY-MM"

    @staticmethod
    def validate(year_month: str | None, field: str = "year_month") -> tuple[int, int]:
        """
        Validate a year-month key.

        Returns:
            (year, month)

        Raises:
            MissingParameterError: 값이 비어 있음
            InvalidFormatError: "2024/01", "24-01", "2024-1", "2024-13" 등
        """
        if year_month is None or (isinstance(year_month, str) and not year_month.strip()):
            raise MissingParameterError(field)
        if not isinstance(year_month, str) or not ValidationPatterns.YEAR_MONTH.fullmatch(year_month):
            raise InvalidFormatError(field, year_month, YearMonthValidator.EXPECTED)

        year, month = (int(part) for part in year_month.split("-"))
        if not 1 <= month <= 12 or year < 1:
            raise InvalidFormatError(field, year_month, YearMonthValidator.EXPECTED)
        return year, month

    @staticmethod
    def month_range(year_month: str) -> tuple[datetime, datetime]:
        """해당 월의 첫날 00:00:00 ~ 말일 23:59:59.999 (양 끝 포함)"""
        year, month = YearMonthValidator.validate(year_month)
        last_day = calendar.monthrange(year, month)[1]
        start = datetime(year, month, 1, 0, 0, 0)
        end = datetime(year, month, last_day, 23, 59, 59, 999000)
        return start, end

    @staticmethod
    def is_future(year_month: str, today: date | None = None) -> bool:
        """이번 달 이후의 월인지"""
        year, month = YearMonthValidator.validate(year_month)
        today = today or date.today()
        return (year, month) > (today.year, today.month)

    @staticmethod
    def format_korean(year_month: str) -> str:
        """'2024-01' -> '2024년 1월'"""
        year, month = YearMonthValidator.validate(year_month)
        return f"{year}년 {month}월"


class TextSanitizer:
    """Text sanitization for safe storage"""

    @staticmethod
    def sanitize(text: str | None, max_length: int = 1000) -> str:
        """
        Trim whitespace, enforce max length, remove null bytes and
        collapse repeated spaces. HTML escaping is left to display time.
        """
        if not text:
            return ""

        sanitized = text.strip()[:max_length]
        sanitized = sanitized.replace("\x00", "")
        sanitized = re.sub(r" +", " ", sanitized)
        return sanitized


class FareRateKey:
    """요율 조회 키(차종, 지역) 정규화: 등록과 견적이 같은 규칙을 써야 같은 요율을 찾는다"""

    VEHICLE_TYPE_MAX_LENGTH = 50
    REGION_MAX_LENGTH = 100

    @staticmethod
    def vehicle_type(value: str | None) -> str:
        return TextSanitizer.sanitize(value, max_length=FareRateKey.VEHICLE_TYPE_MAX_LENGTH)

    @staticmethod
    def region(value: str | None) -> str:
        return TextSanitizer.sanitize(value, max_length=FareRateKey.REGION_MAX_LENGTH)


class AmountValidator:
    """Monetary amount validation (Decimal only)"""

    @staticmethod
    def validate(
        amount: Decimal,
        min_value: Decimal = Decimal("0"),
        max_value: Decimal = Decimal("100000000"),
    ) -> tuple[bool, str | None]:
        """
        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            value = to_decimal(amount)
        except ValueError:
            return False, "Amount must be a number"

        if not value.is_finite():
            return False, "Amount must be finite"
        if value < min_value:
            return False, f"Amount must be at least {min_value}"
        if value > max_value:
            return False, f"Amount cannot exceed {max_value}"
        return True, None


# Pydantic field validators for reuse
def sanitized_text_validator(v: str | None, max_length: int = 1000) -> str | None:
    """Pydantic field validator for sanitized text"""
    if v is None:
        return None
    return TextSanitizer.sanitize(v, max_length)
