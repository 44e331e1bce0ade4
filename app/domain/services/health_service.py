"""
헬스 체크 서비스 - 의존성(DB) 점검

- liveness: 프로세스 생존 여부만 (의존성 점검 없음)
- readiness: 데이터베이스 연결까지 확인
"""
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.logging import get_logger
from app.db.database import AsyncSessionLocal

logger = get_logger(__name__)

_STATUS_HEALTHY = "healthy"
_STATUS_DEGRADED = "degraded"

_CHECK_OK = "ok"

# 인프라 정보를 노출하지 않는 고정 메시지
_ERROR_DB = "error: db_unavailable"


async def _check_db() -> str:
    """가벼운 쿼리로 DB 연결 확인"""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return _CHECK_OK
    except (SQLAlchemyError, OSError) as e:
        logger.warning("DB health check failed", extra_data={"error": str(e)})
        return _ERROR_DB


async def check_readiness() -> dict[str, Any]:
    """
    Readiness 점검 결과.

    status는 모든 의존성이 ok면 "healthy", 하나라도 실패하면 "degraded".
    """
    checks = {"db": await _check_db()}

    all_ok = all(v == _CHECK_OK for v in checks.values())
    if not all_ok:
        logger.warning("Readiness check degraded", extra_data=checks)

    return {"status": _STATUS_HEALTHY if all_ok else _STATUS_DEGRADED, **checks}
