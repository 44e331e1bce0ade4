"""
FastAPI dependency - 대시보드 요청 인증

사용:
    @router.post("/settlements")
    async def create(
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ):
        ...
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import verify_token
from app.core.logging import get_logger
from app.db.database import get_db
from app.db.models.user import User, UserRole

logger = get_logger(__name__)

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    JWT 검증 후 활성 사용자 행을 돌려준다.

    401: 토큰이 없거나 유효하지 않음
    403: 사용자가 없거나 비활성
    """
    token_data = verify_token(credentials.credentials)
    if not token_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="유효하지 않거나 만료된 토큰입니다",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        logger.error(
            "Dashboard access denied, user inactive",
            extra_data={
                "user_id": token_data.user_id,
                "user_found": user is not None,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="비활성화된 계정입니다",
        )
    return user


async def require_editor(current_user: User = Depends(get_current_user)) -> User:
    """조회 전용(VIEWER) 계정의 쓰기 요청 차단"""
    if current_user.role == UserRole.VIEWER:
        logger.warning(
            "Write access denied for viewer",
            extra_data={"user_id": current_user.id},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="조회 전용 계정은 변경할 수 없습니다",
        )
    return current_user
