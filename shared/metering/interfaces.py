from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from shared.metering.models import TokenUsageRecord, UsagePeriod


class UsageRepositoryPort(ABC):
    @abstractmethod
    async def get_current_period(self, user_id: str, now: datetime) -> UsagePeriod | None:
        """Most recent period for the user whose end is after ``now``."""

    @abstractmethod
    async def create_period(self, period: UsagePeriod) -> UsagePeriod:
        """Insert a period. Returns it with its storage id."""

    @abstractmethod
    async def end_period(self, period_id: int, ended_at: datetime) -> None:
        """Supersede a period by moving its end to ``ended_at``."""

    @abstractmethod
    async def increment_usage(
        self,
        period_id: int,
        tokens: int,
        messages: int = 0,
        avatars: int = 0,
    ) -> UsagePeriod:
        """Atomically add to the period counters and return the updated row."""

    @abstractmethod
    async def append_records(self, records: list[TokenUsageRecord]) -> None:
        """Append audit records."""

    @abstractmethod
    async def delete_records_for_session(self, session_id: int) -> int:
        """Cascade removal when a chat session is deleted."""
