"""
Credential-gated features.

External credentials are checked once at startup and the result is logged.
Routes that depend on a feature declare `Depends(require_feature(...))` and are
refused with a 503 ConfigurationError while the credentials are missing, instead
of failing deep inside a request.
"""
import logging
from typing import Dict, List, Tuple

from core.config import settings
from core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

INSIGHTS = "insights"
BILLING = "billing"

FEATURE_CREDENTIALS: Dict[str, Tuple[str, ...]] = {
    INSIGHTS: ("OPENAI_API_KEY",),
    BILLING: ("STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET"),
}


def missing_credentials(feature: str) -> List[str]:
    """Names of the settings the feature needs but which are unset."""
    names = FEATURE_CREDENTIALS[feature]
    return [name for name in names if not getattr(settings, name, None)]


def all_missing_credentials() -> List[str]:
    missing: List[str] = []
    for feature in FEATURE_CREDENTIALS:
        missing.extend(missing_credentials(feature))
    return missing


def feature_status() -> Dict[str, bool]:
    return {feature: not missing_credentials(feature) for feature in FEATURE_CREDENTIALS}


def log_feature_configuration() -> Dict[str, bool]:
    """Log which credential-gated features are available. Called at startup."""
    status = feature_status()
    for feature, enabled in status.items():
        if not enabled:
            missing = missing_credentials(feature)
            logger.error(
                f"Feature '{feature}' disabled: missing {', '.join(missing)}",
                extra={"extra_fields": {"feature": feature, "missing": missing}},
            )
        else:
            logger.info(f"Feature '{feature}' configured")
    return status


def require_feature(feature: str):
    """
    Dependency factory refusing a route whose credentials are missing.

    Usage:
        @router.post("/insights", dependencies=[Depends(require_feature(INSIGHTS))])
    """
    def checker() -> None:
        missing = missing_credentials(feature)
        if missing:
            raise ConfigurationError(feature=feature, missing=missing)

    return checker
