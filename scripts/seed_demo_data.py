"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.enums import CreditTierEnum, StudentPlanEnum
from app.modules.billing.models import LessonCredit
from app.modules.scheduling.models import AvailabilityWindow
from app.modules.students.models import Student

DEMO_STUDENTS = (
    ("demo-paid@kaiwalessons.dev", "山田 太郎", "Taro Yamada", StudentPlanEnum.A),
    ("demo-lite@kaiwalessons.dev", "鈴木 花子", "Hanako Suzuki", StudentPlanEnum.C1),
    ("demo-pro@kaiwalessons.dev", "田中 健", "Ken Tanaka", StudentPlanEnum.C2),
)

DEMO_PLAN_CREDITS = {
    StudentPlanEnum.C1: (CreditTierEnum.LITE, 2),
    StudentPlanEnum.C2: (CreditTierEnum.PRO, 4),
}

# Monday to Friday, Sunday is 0.
DEMO_WINDOW_DAYS = (1, 2, 3, 4, 5)
DEMO_WINDOWS = ((time(10), time(13)), (time(18), time(22)))


@dataclass(slots=True)
class SeedStats:
    students_created: int = 0
    students_updated: int = 0
    windows_created: int = 0
    credits_created: int = 0


async def _ensure_student(
    session: AsyncSession,
    *,
    email: str,
    full_name: str,
    romaji_name: str,
    plan: StudentPlanEnum,
) -> tuple[Student, bool]:
    student = await session.scalar(select(Student).where(Student.email == email))
    if student is None:
        student = Student(email=email, full_name=full_name, romaji_name=romaji_name, plan=plan)
        session.add(student)
        await session.flush()
        return student, True

    student.full_name = full_name
    student.romaji_name = romaji_name
    student.plan = plan
    await session.flush()
    return student, False


async def _ensure_credits(session: AsyncSession, student: Student) -> bool:
    if student.plan not in DEMO_PLAN_CREDITS:
        return False

    existing = await session.scalar(select(LessonCredit).where(LessonCredit.student_id == student.id))
    if existing is not None:
        return False

    tier, credits = DEMO_PLAN_CREDITS[student.plan]
    session.add(LessonCredit(student_id=student.id, tier=tier, credits_remaining=credits, credits_used=0))
    await session.flush()
    return True


async def _ensure_windows(session: AsyncSession) -> int:
    created = 0
    for day in DEMO_WINDOW_DAYS:
        for start_time, end_time in DEMO_WINDOWS:
            existing = await session.scalar(
                select(AvailabilityWindow).where(
                    AvailabilityWindow.day_of_week == day,
                    AvailabilityWindow.start_time == start_time,
                    AvailabilityWindow.end_time == end_time,
                ),
            )
            if existing is not None:
                continue
            session.add(
                AvailabilityWindow(
                    day_of_week=day,
                    start_time=start_time,
                    end_time=end_time,
                    is_available=True,
                ),
            )
            created += 1

    await session.flush()
    return created


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            for email, full_name, romaji_name, plan in DEMO_STUDENTS:
                student, created = await _ensure_student(
                    session,
                    email=email,
                    full_name=full_name,
                    romaji_name=romaji_name,
                    plan=plan,
                )
                if created:
                    stats.students_created += 1
                else:
                    stats.students_updated += 1
                if await _ensure_credits(session, student):
                    stats.credits_created += 1

            stats.windows_created = await _ensure_windows(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Seed idempotent demo data (students per plan, credits, weekday availability).",
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Students created: {stats.students_created}")
    print(f"- Students updated: {stats.students_updated}")
    print(f"- Credit rows created: {stats.credits_created}")
    print(f"- Availability windows created: {stats.windows_created}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
