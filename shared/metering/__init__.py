from shared.metering.exceptions import (
    AvatarLimitExceededError,
    MessageTooLargeError,
    MeteringError,
    MissingIdentityError,
    QuotaExceededError,
    UsageStorageError,
)
from shared.metering.models import (
    OperationType,
    PlanType,
    TokenUsageRecord,
    UsagePeriod,
    UsageSummary,
)
from shared.metering.service import MeteringService

__all__ = [
    "AvatarLimitExceededError",
    "MessageTooLargeError",
    "MeteringError",
    "MeteringService",
    "MissingIdentityError",
    "OperationType",
    "PlanType",
    "QuotaExceededError",
    "TokenUsageRecord",
    "UsagePeriod",
    "UsageStorageError",
    "UsageSummary",
]
