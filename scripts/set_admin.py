"""Grant the administrative flag to every user profile registered under an email.

Usage:
    python scripts/set_admin.py someone@example.com [--env-file .env.production]
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from catchpac.adapters.db_repository import SQLModelRepository
from shared.db import build_engine
from shared.settings import Settings, settings as default_settings


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mark a Catchpac user as administrator")
    parser.add_argument("email", help="Email address the user registered with")
    parser.add_argument(
        "--env-file",
        dest="env_file",
        default=None,
        help="Settings file with the database connection (defaults to .env / environment)",
    )
    return parser.parse_args(argv)


async def set_admin(engine: AsyncEngine, email: str) -> int:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        repository = SQLModelRepository(session)
        print(f"사용자 검색 중: {email}")
        try:
            users = await repository.find_users_by_email(email)
        except (SQLAlchemyError, OSError) as exc:
            print(f"사용자 조회 중 오류 발생: {exc}", file=sys.stderr)
            return 1

        if not users:
            print(f"사용자를 찾을 수 없습니다: {email}", file=sys.stderr)
            print("  1. 이메일 주소가 정확한지 확인해주세요", file=sys.stderr)
            print("  2. 해당 이메일로 회원가입이 되어 있는지 확인해주세요", file=sys.stderr)
            return 0

        print(f"사용자를 찾았습니다. ({len(users)}개)")
        try:
            for user in users:
                await repository.set_admin_flag(user.id, True)
            await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            await session.rollback()
            print(f"관리자 설정 중 오류 발생: {exc}", file=sys.stderr)
            return 1

        for user in users:
            print(f"{email}을(를) 관리자로 설정했습니다.")
            print(f"  ID: {user.id}")
            print(f"  이름: {user.name or '없음'}")
            print(f"  회사: {user.company or '없음'}")
            print(f"  유형: {user.role.value if user.role else '없음'}")
    return 0


async def run(email: str, database_url: str) -> int:
    try:
        engine = build_engine(database_url)
    except Exception as exc: # bad URL or missing driver
        print(f"데이터베이스 연결 설정 오류: {exc}", file=sys.stderr)
        return 1
    try:
        return await set_admin(engine, email)
    finally:
        await engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    if args.env_file:
        env_path = Path(args.env_file)
        if not env_path.is_file():
            print(f"설정 파일을 찾을 수 없습니다: {env_path}", file=sys.stderr)
            return 1
        config = Settings(_env_file=str(env_path))
    else:
        config = default_settings

    exit_code = asyncio.run(run(args.email.strip(), config.DATABASE_URL))
    if exit_code == 0:
        print("완료!")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
