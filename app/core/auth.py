"""
JWT 인증 - 관리자 대시보드 액세스 토큰 발급/검증

토큰에는 user_id와 role만 담긴다. 실제 권한 판단은 매 요청마다
DB의 사용자 행(활성 여부, 역할)을 다시 읽어서 한다.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt as pyjwt
from pydantic import BaseModel

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class TokenPayload(BaseModel):
    """JWT 페이로드"""
    user_id: int
    role: str
    exp: int  # Unix timestamp


def create_access_token(user_id: int, role: str) -> str:
    """액세스 토큰 발급"""
    if not settings.JWT_SECRET_KEY:
        raise ValueError("JWT_SECRET_KEY가 설정되지 않아 토큰을 만들 수 없습니다")
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "user_id": user_id,
        "role": role,
        "exp": int(expire.timestamp()),
    }
    encoded = pyjwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    logger.info("JWT token created", extra_data={"user_id": user_id, "role": role})
    return encoded


def verify_token(token: str) -> Optional[TokenPayload]:
    """토큰 검증 - 서명 오류/만료/형식 오류면 None"""
    if not settings.JWT_SECRET_KEY:
        logger.error("JWT_SECRET_KEY is empty, tokens cannot be verified")
        return None
    try:
        payload = pyjwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return TokenPayload(**payload)
    except pyjwt.InvalidTokenError:
        logger.warning("JWT token invalid or expired")
        return None
    except (KeyError, ValueError) as e:
        logger.warning("JWT payload malformed", extra_data={"error": str(e)})
        return None
