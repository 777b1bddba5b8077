from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker

from shared.metering.exceptions import UsageStorageError
from shared.metering.interfaces import UsageRepositoryPort
from shared.metering.models import TokenUsageRecord, UsagePeriod

logger = structlog.get_logger(__name__)

_PERIOD_COLUMNS = """
    id, user_id, period_start, period_end, tokens_used, tokens_limit,
    message_count, plan_type, avatars_generated, avatars_limit, created_at
"""


class PostgresUsageRepository(UsageRepositoryPort):
    """usage_limits / token_usage tables."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

    async def get_current_period(self, user_id: str, now: datetime) -> UsagePeriod | None:
        sql = text(f"""
            SELECT {_PERIOD_COLUMNS}
            FROM usage_limits
            WHERE user_id = :user_id AND period_end > :now
            ORDER BY period_start DESC, created_at DESC
            LIMIT 1
        """)
        row = await self._fetch_one(sql, {"user_id": user_id, "now": now})
        return _to_period(row) if row else None

    async def create_period(self, period: UsagePeriod) -> UsagePeriod:
        sql = text(f"""
            INSERT INTO usage_limits (
                user_id, period_start, period_end, tokens_used, tokens_limit,
                message_count, agent_count, plan_type, avatars_generated,
                avatars_limit, created_at
            ) VALUES (
                :user_id, :period_start, :period_end, :tokens_used, :tokens_limit,
                :message_count, 0, :plan_type, :avatars_generated,
                :avatars_limit, :created_at
            )
            RETURNING {_PERIOD_COLUMNS}
        """)
        row = await self._fetch_one(
            sql,
            {
                "user_id": period.user_id,
                "period_start": period.period_start,
                "period_end": period.period_end,
                "tokens_used": period.tokens_used,
                "tokens_limit": period.tokens_limit,
                "message_count": period.message_count,
                "plan_type": period.plan_type.value,
                "avatars_generated": period.avatars_generated,
                "avatars_limit": period.avatars_limit,
                "created_at": period.created_at,
            },
            commit=True,
        )
        return _to_period(row)

    async def end_period(self, period_id: int, ended_at: datetime) -> None:
        sql = text("""
            UPDATE usage_limits
            SET period_end = GREATEST(:ended_at, period_start + INTERVAL '1 microsecond')
            WHERE id = :id
        """)
        await self._execute(sql, {"id": period_id, "ended_at": ended_at})

    async def increment_usage(
        self,
        period_id: int,
        tokens: int,
        messages: int = 0,
        avatars: int = 0,
    ) -> UsagePeriod:
        # Single statement so concurrent turns for one user cannot lose updates.
        sql = text(f"""
            UPDATE usage_limits
            SET tokens_used = tokens_used + :tokens,
                message_count = message_count + :messages,
                avatars_generated = avatars_generated + :avatars
            WHERE id = :id
            RETURNING {_PERIOD_COLUMNS}
        """)
        row = await self._fetch_one(
            sql,
            {"id": period_id, "tokens": tokens, "messages": messages, "avatars": avatars},
            commit=True,
        )
        if row is None:
            raise UsageStorageError(f"usage period {period_id} not found")
        return _to_period(row)

    async def append_records(self, records: list[TokenUsageRecord]) -> None:
        if not records:
            return

        sql = text("""
            INSERT INTO token_usage (
                user_id, session_id, agent_id, message_id,
                tokens_used, model_used, operation_type, created_at
            ) VALUES (
                :user_id, :session_id, :agent_id, :message_id,
                :tokens_used, :model_used, :operation_type, :created_at
            )
        """)
        rows = [
            {
                "user_id": r.user_id,
                "session_id": r.session_id,
                "agent_id": r.agent_id,
                "message_id": r.message_id,
                "tokens_used": r.tokens_used,
                "model_used": r.model_used,
                "operation_type": r.operation_type.value,
                "created_at": r.created_at,
            }
            for r in records
        ]
        await self._execute(sql, rows)
        logger.debug("repository.token_usage.appended", count=len(records))

    async def delete_records_for_session(self, session_id: int) -> int:
        sql = text("DELETE FROM token_usage WHERE session_id = :session_id")
        return await self._execute(sql, {"session_id": session_id})

    async def _fetch_one(
        self,
        sql: Any,
        params: Mapping[str, Any],
        commit: bool = False,
    ) -> Mapping[str, Any] | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(sql, params)
                row = result.mappings().first()
                if commit:
                    await session.commit()
        except SQLAlchemyError as exc:
            logger.error("repository.usage.query_failed", error=str(exc))
            raise UsageStorageError(str(exc)) from exc
        return row

    async def _execute(self, sql: Any, params: Any) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(sql, params)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("repository.usage.write_failed", error=str(exc))
            raise UsageStorageError(str(exc)) from exc
        return result.rowcount or 0


def _to_period(row: Mapping[str, Any]) -> UsagePeriod:
    return UsagePeriod(
        id=row["id"],
        user_id=row["user_id"],
        period_start=row["period_start"],
        period_end=row["period_end"],
        tokens_used=row["tokens_used"],
        tokens_limit=row["tokens_limit"],
        message_count=row["message_count"],
        plan_type=row["plan_type"],
        avatars_generated=row["avatars_generated"],
        avatars_limit=row["avatars_limit"],
        created_at=row["created_at"],
    )
