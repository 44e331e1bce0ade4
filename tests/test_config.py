"""
설정 검증 테스트 (app/core/config.py)

1. DEBUG=False + 빈 JWT_SECRET_KEY -> 기동 중단
2. DEBUG=True + 외부 DB -> 경고
3. DATABASE_URL 스킴 변환
4. 목록/내보내기 상한 검증
"""
import warnings

import pytest
from pydantic import ValidationError

from app.core.config import Settings

_SQLITE = "sqlite+aiosqlite:///:memory:"


class TestJWTSecretValidation:

    @pytest.mark.unit
    def test_empty_secret_raises_in_production(self):
        with pytest.raises(ValidationError, match="JWT_SECRET_KEY"):
            Settings(JWT_SECRET_KEY="", DEBUG=False, DATABASE_URL=_SQLITE)

    @pytest.mark.unit
    def test_empty_secret_warns_in_debug(self):
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            s = Settings(JWT_SECRET_KEY="", DEBUG=True, DATABASE_URL=_SQLITE)

        assert any("JWT_SECRET_KEY" in str(x.message) for x in w)
        assert s.JWT_SECRET_KEY == ""

    @pytest.mark.unit
    def test_valid_secret(self):
        s = Settings(JWT_SECRET_KEY="a-valid-secret", DEBUG=False, DATABASE_URL=_SQLITE)
        assert s.JWT_SECRET_KEY == "a-valid-secret"


class TestDebugWithExternalDB:

    @pytest.mark.unit
    def test_external_db_warns(self):
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            Settings(
                JWT_SECRET_KEY="k", DEBUG=True,
                DATABASE_URL="postgresql+asyncpg://u:p@db.example.com:5432/logi",
            )
        assert any("DEBUG=True" in str(x.message) for x in w)

    @pytest.mark.unit
    @pytest.mark.parametrize("host", ["localhost", "127.0.0.1"])
    def test_local_db_no_warning(self, host):
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            Settings(
                JWT_SECRET_KEY="k", DEBUG=True,
                DATABASE_URL=f"postgresql+asyncpg://u:p@{host}:5432/logi",
            )
        assert not any("DEBUG=True" in str(x.message) for x in w)


class TestDatabaseUrl:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw",
        ["postgres://u:p@localhost/logi", "postgresql://u:p@localhost/logi"],
    )
    def test_converted_to_asyncpg(self, raw):
        s = Settings(JWT_SECRET_KEY="k", DATABASE_URL=raw)
        assert s.DATABASE_URL == "postgresql+asyncpg://u:p@localhost/logi"

    @pytest.mark.unit
    def test_sqlite_unchanged(self):
        assert Settings(JWT_SECRET_KEY="k", DATABASE_URL=_SQLITE).DATABASE_URL == _SQLITE


class TestLimits:

    @pytest.mark.unit
    @pytest.mark.parametrize("field", ["SETTLEMENT_PAGE_SIZE_MAX", "EXPORT_MAX_ROWS"])
    def test_non_positive_limit_rejected(self, field):
        with pytest.raises(ValidationError):
            Settings(JWT_SECRET_KEY="k", DATABASE_URL=_SQLITE, **{field: 0})
