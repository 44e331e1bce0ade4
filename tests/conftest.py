"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- HTTP test client with the get_db override
- Test data factories (users, drivers, centers, trips, charters, fare rates)
- Bearer-token headers per role
"""
# JWT_SECRET_KEY는 app import 전에 설정: DEBUG=False면 설정 검증이 빈 키를 거부한다
import os
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-for-testing-only-do-not-use-in-production")

import pytest
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.auth import create_access_token
from app.db.database import Base, get_db
from app.db.models.charter_request import CharterRequest, CharterDestination
from app.db.models.driver import Driver
from app.db.models.fare_rate import FareRate, FareType
from app.db.models.loading_point import LoadingPoint
from app.db.models.trip import Trip, TripStatus
from app.db.models.user import User, UserRole
from app.main import app


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 참고: pytest-asyncio 0.23+ 는 asyncio_mode=auto, asyncio_default_fixture_loop_scope=function으로
# 이벤트 루프를 직접 관리하므로 event_loop fixture를 따로 두지 않는다


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession):
    """Create test client with database override"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Factory for creating dashboard users"""
    counter = {"n": 0}

    async def _create_user(
        name: str = "Test User",
        role: UserRole = UserRole.DISPATCHER,
        email: str | None = None,
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=name,
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def driver_factory(db_session: AsyncSession):
    """Factory for creating drivers"""
    async def _create_driver(
        name: str = "김기사",
        phone: str = "010-1234-5678",
        is_active: bool = True,
        business_name: str | None = None,
        business_number: str | None = None,
    ) -> Driver:
        driver = Driver(
            name=name,
            phone=phone,
            is_active=is_active,
            business_name=business_name,
            business_number=business_number,
        )
        db_session.add(driver)
        await db_session.commit()
        await db_session.refresh(driver)
        return driver

    return _create_driver


@pytest.fixture
def center_factory(db_session: AsyncSession):
    """Factory for creating loading points (centers)"""
    async def _create_center(center_name: str = "이천센터", is_active: bool = True) -> LoadingPoint:
        center = LoadingPoint(center_name=center_name, is_active=is_active)
        db_session.add(center)
        await db_session.commit()
        await db_session.refresh(center)
        return center

    return _create_center


@pytest.fixture
def trip_factory(db_session: AsyncSession):
    """Factory for creating route trips"""
    async def _create_trip(
        driver_id: int,
        date: datetime,
        status: TripStatus = TripStatus.COMPLETED,
        driver_fare: Decimal = Decimal("100000"),
        billing_fare: Decimal = Decimal("120000"),
        route_name: str | None = "A노선",
        deduction_amount: Decimal | None = None,
        absence_reason: str | None = None,
        substitute_driver_id: int | None = None,
        extra_fare: Decimal | None = None,
    ) -> Trip:
        trip = Trip(
            driver_id=driver_id,
            date=date,
            status=status,
            driver_fare=driver_fare,
            billing_fare=billing_fare,
            route_name=route_name,
            deduction_amount=deduction_amount,
            absence_reason=absence_reason,
            substitute_driver_id=substitute_driver_id,
            extra_fare=extra_fare,
        )
        db_session.add(trip)
        await db_session.commit()
        await db_session.refresh(trip)
        return trip

    return _create_trip


@pytest.fixture
def charter_factory(db_session: AsyncSession):
    """Factory for creating charter requests with ordered destinations"""
    async def _create_charter(
        driver_id: int,
        center_id: int,
        date: datetime,
        regions: list[str] | None = None,
        vehicle_type: str = "1톤",
        driver_fare: Decimal = Decimal("80000"),
        total_fare: Decimal = Decimal("100000"),
        extra_fare: Decimal | None = None,
        is_negotiated: bool = False,
    ) -> CharterRequest:
        charter = CharterRequest(
            driver_id=driver_id,
            center_id=center_id,
            date=date,
            vehicle_type=vehicle_type,
            driver_fare=driver_fare,
            total_fare=total_fare,
            extra_fare=extra_fare,
            is_negotiated=is_negotiated,
        )
        db_session.add(charter)
        await db_session.flush()
        for order, region in enumerate(regions or ["강남"], 1):
            db_session.add(CharterDestination(request_id=charter.id, region=region, order=order))
        await db_session.commit()
        await db_session.refresh(charter)
        return charter

    return _create_charter


@pytest.fixture
def fare_rate_factory(db_session: AsyncSession):
    """Factory for creating fare rates"""
    async def _create_rate(
        center_id: int,
        fare_type: FareType = FareType.BASIC,
        vehicle_type: str = "1톤",
        region: str | None = "강남",
        base_fare: Decimal | None = None,
        extra_stop_fee: Decimal | None = None,
        extra_region_fee: Decimal | None = None,
        is_active: bool = True,
    ) -> FareRate:
        rate = FareRate(
            center_id=center_id,
            vehicle_type=vehicle_type,
            region=region if fare_type == FareType.BASIC else None,
            fare_type=fare_type,
            base_fare=base_fare,
            extra_stop_fee=extra_stop_fee,
            extra_region_fee=extra_region_fee,
            is_active=is_active,
        )
        db_session.add(rate)
        await db_session.commit()
        await db_session.refresh(rate)
        return rate

    return _create_rate


# ============================================================================
# Sample Test Data
# ============================================================================

@pytest.fixture
async def admin_user(user_factory) -> User:
    return await user_factory(name="관리자", role=UserRole.ADMIN)


@pytest.fixture
async def dispatcher_user(user_factory) -> User:
    return await user_factory(name="배차담당", role=UserRole.DISPATCHER)


@pytest.fixture
async def viewer_user(user_factory) -> User:
    return await user_factory(name="조회자", role=UserRole.VIEWER)


@pytest.fixture
async def sample_driver(driver_factory) -> Driver:
    return await driver_factory()


@pytest.fixture
async def sample_center(center_factory) -> LoadingPoint:
    return await center_factory()


def auth_headers(user: User) -> dict[str, str]:
    """Bearer 헤더 생성"""
    token = create_access_token(user.id, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user) -> dict[str, str]:
    return auth_headers(admin_user)


@pytest.fixture
def dispatcher_headers(dispatcher_user) -> dict[str, str]:
    return auth_headers(dispatcher_user)


@pytest.fixture
def viewer_headers(viewer_user) -> dict[str, str]:
    return auth_headers(viewer_user)
