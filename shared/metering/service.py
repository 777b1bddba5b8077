from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from shared.metering import pricing
from shared.metering.exceptions import (
    AvatarLimitExceededError,
    MessageTooLargeError,
    MissingIdentityError,
    QuotaExceededError,
)
from shared.metering.interfaces import UsageRepositoryPort
from shared.metering.models import (
    OperationType,
    PlanType,
    TokenUsageRecord,
    UsagePeriod,
    UsageSummary,
)

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MeteringService:
    """Quota checks and usage accounting against a user's monthly period.

    Counters are only ever changed through ``increment_usage`` so concurrent
    operations for the same user never lose updates. Usage updates and the
    callers' own writes (chat messages, documents) are separate statements;
    a crash between them under-counts usage.
    """

    def __init__(self, repository: UsageRepositoryPort, clock: Clock = _utcnow) -> None:
        self._repository = repository
        self._clock = clock

    async def current_period(self, user_id: str | None) -> UsagePeriod:
        if not user_id:
            raise MissingIdentityError()

        now = self._clock()
        period = await self._repository.get_current_period(user_id, now)
        if period is not None:
            return period

        return await self._open_period(user_id, PlanType.FREE, now)

    async def check_chat_quota(
        self,
        user_id: str | None,
        text: str,
        model: str,
    ) -> tuple[UsagePeriod, int]:
        """Reject before any provider call when the message cannot be billed.

        Returns the current period and the estimated input cost.
        """
        period = await self.current_period(user_id)
        self._ensure_not_exhausted(period)

        estimated_input = pricing.estimate_tokens(text, model)
        if period.tokens_used + estimated_input > period.tokens_limit:
            logger.warning(
                "metering.quota.message_too_large",
                user_id=user_id,
                estimated_tokens=estimated_input,
                tokens_used=period.tokens_used,
                tokens_limit=period.tokens_limit,
            )
            raise MessageTooLargeError(
                estimated_tokens=estimated_input,
                tokens_used=period.tokens_used,
                tokens_limit=period.tokens_limit,
                plan_type=period.plan_type.value,
            )
        return period, estimated_input

    async def record_chat_usage(
        self,
        user_id: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        session_id: int | None = None,
        agent_id: int | None = None,
        user_message_id: int | None = None,
        assistant_message_id: int | None = None,
    ) -> UsagePeriod:
        period = await self.current_period(user_id)
        updated = await self._repository.increment_usage(
            period.id, tokens=input_tokens + output_tokens, messages=1
        )
        await self._repository.append_records([
            TokenUsageRecord(
                user_id=user_id,
                session_id=session_id,
                agent_id=agent_id,
                message_id=user_message_id,
                tokens_used=input_tokens,
                model_used=model,
                operation_type=OperationType.CHAT,
            ),
            TokenUsageRecord(
                user_id=user_id,
                session_id=session_id,
                agent_id=agent_id,
                message_id=assistant_message_id,
                tokens_used=output_tokens,
                model_used=model,
                operation_type=OperationType.CHAT,
            ),
        ])

        logger.info(
            "metering.chat.recorded",
            user_id=user_id,
            session_id=session_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            tokens_used=updated.tokens_used,
        )
        return updated

    async def record_document_embedding(
        self,
        user_id: str | None,
        agent_id: int,
        tokens: int,
        model: str,
    ) -> UsagePeriod:
        # TODO: gate on remaining budget before the embedding call once product
        # decides whether over-quota uploads should be rejected.
        period = await self.current_period(user_id)
        updated = await self._repository.increment_usage(period.id, tokens=tokens)
        await self._repository.append_records([
            TokenUsageRecord(
                user_id=user_id,
                agent_id=agent_id,
                tokens_used=tokens,
                model_used=model,
                operation_type=OperationType.DOCUMENT_EMBEDDING,
            )
        ])
        logger.info(
            "metering.document_embedding.recorded",
            user_id=user_id,
            agent_id=agent_id,
            tokens=tokens,
            tokens_used=updated.tokens_used,
        )
        return updated

    async def check_avatar_quota(self, user_id: str | None) -> UsagePeriod:
        period = await self.current_period(user_id)
        if period.avatars_generated >= period.avatars_limit:
            logger.warning(
                "metering.avatar.limit_reached",
                user_id=user_id,
                avatars_generated=period.avatars_generated,
                avatars_limit=period.avatars_limit,
            )
            raise AvatarLimitExceededError(
                avatars_generated=period.avatars_generated,
                avatars_limit=period.avatars_limit,
                plan_type=period.plan_type.value,
            )
        if period.tokens_used + pricing.AVATAR_GENERATION_COST > period.tokens_limit:
            raise self._quota_error(period)
        return period

    async def record_avatar_generation(
        self,
        user_id: str,
        model: str,
        agent_id: int | None = None,
    ) -> UsagePeriod:
        period = await self.current_period(user_id)
        updated = await self._repository.increment_usage(
            period.id, tokens=pricing.AVATAR_GENERATION_COST, avatars=1
        )
        await self._repository.append_records([
            TokenUsageRecord(
                user_id=user_id,
                agent_id=agent_id,
                tokens_used=pricing.AVATAR_GENERATION_COST,
                model_used=model,
                operation_type=OperationType.AVATAR_GENERATION,
            )
        ])
        logger.info(
            "metering.avatar.recorded",
            user_id=user_id,
            avatars_generated=updated.avatars_generated,
        )
        return updated

    async def change_plan(self, user_id: str | None, plan: PlanType) -> UsagePeriod:
        """Supersede the current period with one on ``plan``.

        Only an upgrade starts from zero usage. A downgrade carries the
        period's counters over, and asking for the current plan is a no-op.
        """
        existing = await self.current_period(user_id)
        if existing.plan_type == plan:
            return existing

        now = self._clock()
        upgrade = pricing.token_limit_for_plan(plan) > existing.tokens_limit
        await self._repository.end_period(existing.id, now)

        if upgrade:
            period = await self._open_period(existing.user_id, plan, now, start=now)
        else:
            period = await self._open_period(existing.user_id, plan, now, start=now, carry_over=existing)
        logger.info(
            "metering.plan.changed",
            user_id=user_id,
            plan_type=plan.value,
            previous_plan=existing.plan_type.value,
            usage_reset=upgrade,
        )
        return period

    async def usage_summary(self, user_id: str | None) -> UsageSummary:
        period = await self.current_period(user_id)
        return UsageSummary(
            period=period,
            remaining_tokens=pricing.remaining_tokens(period.tokens_used, period.tokens_limit),
            usage_percentage=pricing.usage_percentage(period.tokens_used, period.tokens_limit),
            has_exceeded=pricing.has_exceeded(period.tokens_used, period.tokens_limit),
            formatted_usage=pricing.format_token_count(period.tokens_used),
            formatted_limit=pricing.format_token_count(period.tokens_limit),
            formatted_remaining=pricing.format_token_count(period.remaining_tokens),
            reset_date=period.period_end,
            avatars_remaining=max(0, period.avatars_limit - period.avatars_generated),
        )

    async def delete_session_records(self, session_id: int) -> int:
        return await self._repository.delete_records_for_session(session_id)

    async def _open_period(
        self,
        user_id: str,
        plan: PlanType,
        now: datetime,
        start: datetime | None = None,
        carry_over: UsagePeriod | None = None,
    ) -> UsagePeriod:
        month_start, period_end = pricing.new_period_bounds(now)
        counters = {}
        if carry_over is not None:
            counters = {
                "tokens_used": carry_over.tokens_used,
                "message_count": carry_over.message_count,
                "avatars_generated": carry_over.avatars_generated,
            }
        period = await self._repository.create_period(
            UsagePeriod(
                user_id=user_id,
                period_start=start or month_start,
                period_end=period_end,
                tokens_limit=pricing.token_limit_for_plan(plan),
                avatars_limit=pricing.avatar_limit_for_plan(plan),
                plan_type=plan,
                **counters,
            )
        )
        logger.info(
            "metering.period.created",
            user_id=user_id,
            plan_type=plan.value,
            period_start=period.period_start.isoformat(),
            period_end=period.period_end.isoformat(),
        )
        return period

    def _ensure_not_exhausted(self, period: UsagePeriod) -> None:
        if pricing.has_exceeded(period.tokens_used, period.tokens_limit):
            logger.warning(
                "metering.quota.exceeded",
                user_id=period.user_id,
                tokens_used=period.tokens_used,
                tokens_limit=period.tokens_limit,
            )
            raise self._quota_error(period)

    @staticmethod
    def _quota_error(period: UsagePeriod) -> QuotaExceededError:
        return QuotaExceededError(
            tokens_used=period.tokens_used,
            tokens_limit=period.tokens_limit,
            plan_type=period.plan_type.value,
            reset_date=period.period_end.isoformat(),
        )
