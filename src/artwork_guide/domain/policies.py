"""
Rate limit policies for the Artwork Guide API.

Defines the per-endpoint request quotas and provides a registry for loading
and accessing them from YAML configuration.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml

from artwork_guide.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class ThrottledEndpoint(str, Enum):
    """Endpoints guarded by the rate limiter, each with its own policy."""

    CHAT = "chat"
    ANALYSIS = "analysis"


@dataclass(frozen=True)
class RateLimitPolicy:
    """
    Sliding window quota.

    Attributes:
        max_requests: Admissions allowed inside one window
        window_ms: Window length in milliseconds
    """

    max_requests: int
    window_ms: int

    def __post_init__(self):
        if isinstance(self.max_requests, bool) or not isinstance(self.max_requests, int):
            raise ValueError("max_requests must be an integer")
        if isinstance(self.window_ms, bool) or not isinstance(self.window_ms, int):
            raise ValueError("window_ms must be an integer")
        if self.max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")

    @property
    def ttl_seconds(self) -> int:
        """Expiry applied to an identifier's counter key."""
        return math.ceil(self.window_ms / 1000)


# 10 requests per 5 minutes for both endpoints
DEFAULT_RATE_LIMITS: dict[ThrottledEndpoint, RateLimitPolicy] = {
    ThrottledEndpoint.CHAT: RateLimitPolicy(max_requests=10, window_ms=5 * 60 * 1000),
    ThrottledEndpoint.ANALYSIS: RateLimitPolicy(max_requests=10, window_ms=5 * 60 * 1000),
}


class RateLimitPolicyRegistry:
    """
    Registry for loading and accessing endpoint rate limit policies.

    Starts from DEFAULT_RATE_LIMITS and applies overrides from a YAML file
    when a config path is given::

        rate_limits:
          chat:
            max_requests: 10
            window_ms: 300000
    """

    def __init__(self, config_path: Optional[str] = None):
        self._config_path = config_path
        self._policies: dict[ThrottledEndpoint, RateLimitPolicy] = {}
        self._load_policies()

    def _load_policies(self) -> None:
        """Load defaults, then overrides from the YAML file if configured."""
        self._policies = dict(DEFAULT_RATE_LIMITS)

        if not self._config_path:
            return

        config_path = Path(self._config_path)
        if not config_path.exists():
            raise ConfigurationError(
                f"Rate limit configuration file not found: {self._config_path}",
                config_key="rate_limits_config_path",
            )

        try:
            with open(config_path, "r") as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in rate limit configuration: {e}",
                config_key="rate_limits_config_path",
            )

        limits_config = config.get("rate_limits") if isinstance(config, dict) else config
        limits_config = limits_config or {}
        if not isinstance(limits_config, dict):
            raise ConfigurationError(
                "Rate limit configuration must map endpoint names to policies",
                config_key="rate_limits",
            )

        for endpoint_name, policy_config in limits_config.items():
            try:
                endpoint = ThrottledEndpoint(endpoint_name)
            except ValueError:
                logger.warning("Ignoring rate limit for unknown endpoint %r", endpoint_name)
                continue

            default = DEFAULT_RATE_LIMITS[endpoint]
            try:
                policy = RateLimitPolicy(
                    max_requests=policy_config.get("max_requests", default.max_requests),
                    window_ms=policy_config.get("window_ms", default.window_ms),
                )
            except (AttributeError, ValueError) as e:
                raise ConfigurationError(
                    f"Invalid rate limit for endpoint {endpoint_name}: {e}",
                    config_key=f"rate_limits.{endpoint_name}",
                )

            self._policies[endpoint] = policy

    def get_policy(self, endpoint: ThrottledEndpoint) -> RateLimitPolicy:
        """Get the policy for a throttled endpoint."""
        return self._policies[endpoint]

    def get_all_policies(self) -> dict[ThrottledEndpoint, RateLimitPolicy]:
        """Get all registered policies."""
        return self._policies.copy()

    def reload(self) -> None:
        """Reload policies from configuration file."""
        self._policies.clear()
        self._load_policies()
