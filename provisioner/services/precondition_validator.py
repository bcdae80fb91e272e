"""Checks run against the live database listing before creating anything."""

from typing import Iterable

from provisioner.core.exceptions import DuplicateNameError, QuotaExceededError
from provisioner.models.database import DatabaseSummary

# Always Free Autonomous Databases allowed per tenancy
FREE_TIER_DATABASE_LIMIT = 2


def validate(
    resources: Iterable[DatabaseSummary],
    requested_name: str,
    is_free_tier_request: bool,
    free_tier_cap: int = FREE_TIER_DATABASE_LIMIT,
) -> None:
    """
    Reject a creation that would exceed the free tier cap or reuse a name.

    Only non-terminated databases count. The quota is checked first.

    Raises:
        QuotaExceededError: Free tier request while the cap is already reached
        DuplicateNameError: A live database already has the requested name
    """
    live = [resource for resource in resources if not resource.is_terminated]

    if is_free_tier_request:
        free_tier_names = {resource.db_name for resource in live if resource.is_free_tier}
        if len(free_tier_names) >= free_tier_cap:
            raise QuotaExceededError(free_tier_cap)

    if any(resource.db_name == requested_name for resource in live):
        raise DuplicateNameError(requested_name)
