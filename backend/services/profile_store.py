"""Storage access for the reconciliation run.

Reads every user's temperature settings and credentials, loads schedules,
and writes back the only two things the run owns: refreshed device
credentials and override bookkeeping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.core.decision_engine import TemperatureSettings
from backend.core.override import OverrideState
from backend.core.scheduler import Schedule, parse_phases
from backend.integrations.device_client import Credentials
from backend.models.database import SleepSchedule, TemperatureProfile, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UserProfile:
    email: str
    credentials: Credentials
    settings: TemperatureSettings


def _override_state(row: TemperatureProfile) -> OverrideState:
    return OverrideState(
        schedule_overridden_at=row.schedule_overridden_at,
        last_commanded_at=row.last_commanded_at,
        last_commanded_level=row.last_commanded_level,
        manual_level_override_at=row.manual_level_override_at,
    )


class ProfileStore:
    """Async SQLAlchemy access for users, temperature profiles and schedules."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def list_profiles(self) -> list[UserProfile]:
        """Return every user that has a temperature profile."""
        async with self._session_maker() as session:
            result = await session.execute(
                select(TemperatureProfile, User)
                .join(User, TemperatureProfile.email == User.email)
                .order_by(User.email)
            )
            rows = result.all()

        profiles = [
            UserProfile(
                email=user.email,
                credentials=Credentials(
                    access_token=user.access_token,
                    refresh_token=user.refresh_token,
                    expires_at=user.token_expires_at,
                    device_user_id=user.device_user_id,
                ),
                settings=TemperatureSettings(
                    timezone=profile.timezone,
                    preheat_only=profile.preheat_only,
                    preheat_time=profile.preheat_time,
                    preheat_level=profile.preheat_level,
                    active_schedule_id=profile.active_schedule_id,
                    override=_override_state(profile),
                ),
            )
            for profile, user in rows
        ]
        logger.debug("Loaded %d temperature profiles", len(profiles))
        return profiles

    async def get_schedule(self, schedule_id: int) -> Schedule | None:
        """Load a schedule; malformed phases raise ``pydantic.ValidationError``."""
        async with self._session_maker() as session:
            row = await session.get(SleepSchedule, schedule_id)
        if row is None:
            return None
        return Schedule(
            id=row.id,
            name=row.name,
            phases=tuple(parse_phases(row.phases or [])),
            allow_manual_override=row.allow_manual_override,
        )

    async def save_credentials(self, email: str, credentials: Credentials) -> None:
        async with self._session_maker() as session, session.begin():
            await session.execute(
                update(User)
                .where(User.email == email)
                .values(
                    access_token=credentials.access_token,
                    refresh_token=credentials.refresh_token,
                    token_expires_at=credentials.expires_at,
                )
            )
        logger.info("Stored refreshed device credentials for %s", email)

    async def save_override_state(
        self, email: str, expected: OverrideState, new: OverrideState
    ) -> bool:
        """Compare-and-set the override bookkeeping for one user.

        The row is locked for the duration of the transaction. If another
        run changed it since ``expected`` was read, nothing is written and
        ``False`` is returned.
        """
        async with self._session_maker() as session, session.begin():
            row = (
                await session.execute(
                    select(TemperatureProfile)
                    .where(TemperatureProfile.email == email)
                    .with_for_update()
                )
            ).scalar_one_or_none()
            if row is None:
                logger.warning("Temperature profile for %s disappeared; bookkeeping not saved", email)
                return False
            if _override_state(row) != expected:
                logger.warning(
                    "Override bookkeeping for %s changed by a concurrent run; keeping theirs",
                    email,
                )
                return False
            row.schedule_overridden_at = new.schedule_overridden_at
            row.last_commanded_at = new.last_commanded_at
            row.last_commanded_level = new.last_commanded_level
            row.manual_level_override_at = new.manual_level_override_at
        return True


__all__ = ["ProfileStore", "UserProfile"]
