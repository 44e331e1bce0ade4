#!/usr/bin/env python3
"""
관리자 계정 생성 + 액세스 토큰 발급

사용:
    python scripts/create_admin.py --email admin@example.com --name "관리자"
    python scripts/create_admin.py --email ops@example.com --name "배차팀" --role dispatcher

이미 같은 이메일이 있으면 새로 만들지 않고 토큰만 다시 발급한다.
"""
import argparse
import asyncio
import sys

from sqlalchemy import select

from app.core.auth import create_access_token
from app.db.database import AsyncSessionLocal, Base, engine
from app.db.models.user import User, UserRole


async def create_user(email: str, name: str, role: UserRole) -> tuple[User, bool]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user:
            return user, False

        user = User(email=email, name=name, role=role, is_active=True)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user, True


async def run(email: str, name: str, role: UserRole) -> int:
    try:
        user, created = await create_user(email, name, role)
    finally:
        await engine.dispose()

    status = "created" if created else "already exists"
    print(f"User {user.email} (id={user.id}, role={user.role.value}) {status}")
    print(f"Access token:\n{create_access_token(user.id, user.role.value)}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="대시보드 사용자 생성 및 토큰 발급")
    parser.add_argument("--email", required=True, help="로그인 이메일")
    parser.add_argument("--name", required=True, help="표시 이름")
    parser.add_argument(
        "--role",
        choices=[role.value for role in UserRole],
        default=UserRole.ADMIN.value,
        help="역할 (기본: admin)",
    )
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.email.strip().lower(), args.name.strip(), UserRole(args.role))))


if __name__ == "__main__":
    main()
