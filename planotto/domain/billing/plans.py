from typing import Any, Literal, Mapping, Optional

PlanTier = Literal["free", "pro"]

PAID_FEATURES = (
    "ai_translation",
    "recipe_import",
    "image_generation",
    "multiple_menus",
    "advanced_filters",
    "avatar_frames",
    "pdf_export",
)

# legacy auth metadata used several names for the plan
PLAN_PROFILE_FIELDS = (
    "plan_tier",
    "subscription_tier",
    "subscription_plan",
    "billing_plan",
    "plan",
)

_PRO_VALUES = frozenset({"pro", "premium", "paid", "plus"})


def normalize_plan_tier(value: Any) -> PlanTier:
    normalized = str(value or "").strip().lower()
    return "pro" if normalized in _PRO_VALUES else "free"


def resolve_plan_tier_from_metadata(metadata: Optional[Mapping[str, Any]]) -> PlanTier:
    if not metadata or not isinstance(metadata, Mapping):
        return "free"
    for name in PLAN_PROFILE_FIELDS:
        if name in metadata:
            return normalize_plan_tier(metadata[name])
    return "free"


def is_paid_feature_enabled(plan_tier: str, feature: str) -> bool:
    if feature not in PAID_FEATURES:
        return False
    return plan_tier == "pro"


def enabled_paid_features(plan_tier: str) -> list[str]:
    return [feature for feature in PAID_FEATURES if is_paid_feature_enabled(plan_tier, feature)]
