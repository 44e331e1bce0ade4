"""
Custom Exception Hierarchy

Provides structured exceptions for consistent error handling across the application.
모든 정산/요율 오류는 타입이 있는 예외로 API 경계까지 그대로 전파된다.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"
    ALREADY_EXISTS = "ERR_1003"
    UNAUTHORIZED = "ERR_1004"
    FORBIDDEN = "ERR_1005"
    MISSING_PARAMETER = "ERR_1007"
    INVALID_FORMAT = "ERR_1008"
    PERSISTENCE_FAILURE = "ERR_1009"

    # Driver / user errors (3xxx)
    DRIVER_NOT_FOUND = "ERR_3001"
    USER_NOT_FOUND = "ERR_3002"

    # Settlement errors (4xxx)
    SETTLEMENT_NOT_FOUND = "ERR_4001"
    DUPLICATE_SETTLEMENT = "ERR_4002"
    SETTLEMENT_LOCKED = "ERR_4003"

    # Fare rate errors (5xxx)
    MISSING_RATES = "ERR_5001"
    FARE_RATE_NOT_FOUND = "ERR_5002"
    CENTER_NOT_FOUND = "ERR_5003"

    # State machine errors (6xxx)
    INVALID_STATE_TRANSITION = "ERR_6001"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class MissingParameterError(ValidationException):
    """필수 파라미터 누락"""

    def __init__(self, field: str):
        super().__init__(
            message=f"Missing required parameter: {field}",
            field=field,
            error_code=ErrorCode.MISSING_PARAMETER,
        )


class InvalidFormatError(ValidationException):
    """형식 오류 (예: yearMonth가 YYYY-MM이 아님)"""

    def __init__(self, field: str, value: Any, expected: str):
        super().__init__(
            message=f"Invalid format for {field}: expected {expected}",
            field=field,
            details={"value": str(value), "expected": expected},
            error_code=ErrorCode.INVALID_FORMAT,
        )


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class DriverNotFoundError(NotFoundException):
    """Raised when driver is not found"""

    def __init__(self, driver_id: Any):
        super().__init__("Driver", driver_id, error_code=ErrorCode.DRIVER_NOT_FOUND)


class SettlementNotFoundError(NotFoundException):
    """Raised when settlement is not found"""

    def __init__(self, settlement_id: Any):
        super().__init__("Settlement", settlement_id, error_code=ErrorCode.SETTLEMENT_NOT_FOUND)


class PermissionDeniedError(AppException):
    """관리자 권한이 필요한 작업을 일반 사용자가 요청한 경우"""

    def __init__(self, action: str, user_id: int | None = None):
        super().__init__(
            message=f"Permission denied for action '{action}'",
            error_code=ErrorCode.FORBIDDEN,
            status_code=403,
            details={"action": action, "user_id": user_id}
        )


class PersistenceError(AppException):
    """저장소 계층 실패: 원인 예외는 __cause__로 보존된다"""

    def __init__(self, operation: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Persistence failure during {operation}",
            error_code=ErrorCode.PERSISTENCE_FAILURE,
            status_code=500,
            details=details
        )
        self.details["operation"] = operation


class SettlementException(AppException):
    """Base exception for settlement-related errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        settlement_id: int | None = None,
        status_code: int = 409,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        if settlement_id:
            self.details["settlement_id"] = settlement_id


class DuplicateSettlementError(SettlementException):
    """같은 기사/같은 월의 정산이 이미 존재"""

    def __init__(self, driver_id: int, year_month: str, existing_id: int | None = None):
        super().__init__(
            message=f"Settlement already exists for driver {driver_id} in {year_month}",
            error_code=ErrorCode.DUPLICATE_SETTLEMENT,
            settlement_id=existing_id,
            details={"driver_id": driver_id, "year_month": year_month}
        )


class SettlementLockedError(SettlementException):
    """임시저장(DRAFT)이 아닌 정산을 수정/삭제하려는 경우"""

    def __init__(self, settlement_id: int, current_status: str, action: str):
        super().__init__(
            message=f"Settlement {settlement_id} is {current_status}; '{action}' requires DRAFT",
            error_code=ErrorCode.SETTLEMENT_LOCKED,
            settlement_id=settlement_id,
            details={"current_status": current_status, "action": action}
        )


class InvalidTransitionError(SettlementException):
    """Raised when settlement state transition is not allowed"""

    def __init__(self, settlement_id: int, current_status: str, target_status: str):
        super().__init__(
            message=f"Invalid transition from '{current_status}' to '{target_status}'",
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            settlement_id=settlement_id,
            details={
                "current_status": current_status,
                "target_status": target_status,
            }
        )


class MissingRatesError(AppException):
    """요율 누락: 호출자가 요율 등록 후 재계산할 수 있도록 구조화된 상세를 담는다.

    partial_quote에는 등록된 요율만으로 계산한 잠정 견적이 들어있다.
    """

    def __init__(
        self,
        missing_regions: list[str],
        center_name: str,
        vehicle_type: str,
        missing_stop_fee: bool = False,
        partial_quote: Any = None,
    ):
        super().__init__(
            message="등록되지 않은 요율이 있습니다",
            error_code=ErrorCode.MISSING_RATES,
            status_code=422,
            details={
                "missingRegions": list(missing_regions),
                "centerName": center_name,
                "vehicleType": vehicle_type,
                "missingStopFee": missing_stop_fee,
            }
        )
        self.missing_regions = list(missing_regions)
        self.center_name = center_name
        self.vehicle_type = vehicle_type
        self.missing_stop_fee = missing_stop_fee
        self.partial_quote = partial_quote

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.partial_quote is not None:
            payload["data"] = self.partial_quote.to_dict()
        return payload
