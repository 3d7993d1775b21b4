"""Rate Limits Router - lets clients show how many AI requests are left."""

from fastapi import APIRouter, Depends

from artwork_guide.api.dependencies import (
    current_policy_registry,
    current_rate_limiter,
    current_user_id,
)
from artwork_guide.domain.policies import RateLimitPolicyRegistry
from artwork_guide.interfaces.rate_limiter import RateLimiterPort


router = APIRouter(prefix="/rate-limits", tags=["Rate Limits"])


@router.get("")
async def get_rate_limits(
    user_id: str = Depends(current_user_id),
    rate_limiter: RateLimiterPort = Depends(current_rate_limiter),
    policy_registry: RateLimitPolicyRegistry = Depends(current_policy_registry),
):
    """
    Remaining quota of the caller on every throttled endpoint.

    Read-only: does not consume a request.
    """
    limits = {}
    for endpoint, policy in policy_registry.get_all_policies().items():
        limits[endpoint.value] = {
            "remaining": await rate_limiter.get_remaining_requests(user_id, policy),
            "limit": policy.max_requests,
            "windowMs": policy.window_ms,
        }
    return limits
