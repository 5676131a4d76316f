"""
Edition validation.

The Community edition always resolves to the Community tier.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Mapping

from .constants import TIER_LIMITS, UPGRADE_MESSAGES
from .errors import auth_error
from .types import UsageLimits

lib_logger = logging.getLogger("cosmara_sdk")


class Edition(str, Enum):
    """Named bundles of limits and features."""
    COMMUNITY = "community"
    DEVELOPER = "developer"
    PROFESSIONAL = "professional"


COMMUNITY_FEATURES: FrozenSet[str] = frozenset({
    "multi_provider",
    "streaming",
    "usage_tracking",
})


@dataclass(frozen=True)
class LicenseResult:
    """Outcome of a successful validation."""
    edition: Edition
    limits: UsageLimits
    features: FrozenSet[str]


class LicenseValidator:
    """Checks the configured edition against the Community tier."""

    def __init__(self, tier_limits: Mapping[str, UsageLimits] = TIER_LIMITS):
        self.tier_limits = tier_limits

    def validate(self, config) -> LicenseResult:
        """Validate the edition claimed by a configuration.

        Args:
            config: Object with ``edition`` and ``license_key`` attributes

        Returns:
            LicenseResult for the Community tier

        Raises:
            AIError: AUTH_ERROR if a higher tier is claimed
        """
        try:
            edition = Edition(config.edition)
        except ValueError:
            raise auth_error(f"Unknown edition: {config.edition!r}")

        if edition != Edition.COMMUNITY:
            raise auth_error(
                f"Edition '{edition.value}' is not available. {UPGRADE_MESSAGES['edition']}"
            )

        if getattr(config, "license_key", None):
            # Community accepts no upgrade token
            lib_logger.warning("License key ignored: Community edition has no upgrade tokens")

        return LicenseResult(
            edition=Edition.COMMUNITY,
            limits=self.tier_limits[Edition.COMMUNITY.value],
            features=COMMUNITY_FEATURES,
        )
