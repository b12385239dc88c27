"""
Per-tenant feature flags.

Agencies switch whole content areas on or off for a client. Enforcement happens
server-side when content is created for that client; the flags are also exposed to
client users so their portal can hide disabled sections.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from portal.errors import Forbidden

logger = logging.getLogger(__name__)


# feature name -> clients column
FEATURE_COLUMNS: Dict[str, str] = {
    "campaigns": "campaigns_enabled",
    "social": "social_media_enabled",
    "blogs": "blogs_enabled",
}

# content table -> feature it belongs to
TABLE_FEATURES: Dict[str, str] = {
    "blog_posts": "blogs",
    "social_posts": "social",
    "campaigns": "campaigns",
}


def get_client_features(client: Mapping[str, Any]) -> Dict[str, bool]:
    """Feature flags for a client row; a missing or NULL flag counts as enabled."""
    features = {}
    for name, column in FEATURE_COLUMNS.items():
        value = client.get(column)
        features[name] = True if value is None else bool(value)
    features["portal"] = True if client.get("portal_enabled") is None else bool(client["portal_enabled"])
    return features


def check_feature_access(client: Mapping[str, Any], feature: str) -> bool:
    return get_client_features(client).get(feature, False)


def require_feature(client: Mapping[str, Any], feature: str) -> None:
    """
    Raise Forbidden when the client has `feature` switched off.

    Raises:
        Forbidden: If the feature is disabled for this client
    """
    if not check_feature_access(client, feature):
        logger.info("[FEATURES] Feature disabled: client_id=%s, feature=%s", client.get("id"), feature)
        raise Forbidden(f"The {feature} feature is not enabled for this client")
