"""Ready-made smart ignore rule bundles for common noise fields."""

from __future__ import annotations

from datetime import datetime

from response_parity.models import SmartIgnoreRule

ID_FIELDS: tuple[SmartIgnoreRule, ...] = (
    SmartIgnoreRule.by_property_name("Id", "Ignore ID fields"),
    SmartIgnoreRule.by_property_name("Guid", "Ignore GUID fields"),
    SmartIgnoreRule.by_property_name("Key", "Ignore key fields"),
    SmartIgnoreRule.by_name_pattern(r".*Id", "Ignore properties ending with 'Id'"),
    SmartIgnoreRule.by_name_pattern(r".*Guid", "Ignore properties ending with 'Guid'"),
    SmartIgnoreRule.by_name_pattern(r".*Key", "Ignore properties ending with 'Key'"),
)

TIMESTAMPS: tuple[SmartIgnoreRule, ...] = (
    SmartIgnoreRule.by_property_type(datetime, "Ignore datetime fields"),
    SmartIgnoreRule.by_property_name("Timestamp", "Ignore timestamp fields"),
    SmartIgnoreRule.by_property_name("CreatedDate", "Ignore creation timestamps"),
    SmartIgnoreRule.by_property_name("ModifiedDate", "Ignore modification timestamps"),
    SmartIgnoreRule.by_property_name("UpdatedDate", "Ignore update timestamps"),
    SmartIgnoreRule.by_property_name("LastModified", "Ignore last modified timestamps"),
    SmartIgnoreRule.by_name_pattern(r".*Date", "Ignore properties ending with 'Date'"),
    SmartIgnoreRule.by_name_pattern(r".*Time", "Ignore properties ending with 'Time'"),
    SmartIgnoreRule.by_name_pattern(r".*Timestamp", "Ignore properties ending with 'Timestamp'"),
)

METADATA: tuple[SmartIgnoreRule, ...] = (
    SmartIgnoreRule.by_property_name("Version", "Ignore version fields"),
    SmartIgnoreRule.by_property_name("ETag", "Ignore ETag fields"),
    SmartIgnoreRule.by_property_name("RequestId", "Ignore request ID fields"),
    SmartIgnoreRule.by_property_name("SessionId", "Ignore session ID fields"),
    SmartIgnoreRule.by_property_name("CorrelationId", "Ignore correlation ID fields"),
    SmartIgnoreRule.by_name_pattern(r".*Version", "Ignore properties ending with 'Version'"),
    SmartIgnoreRule.by_name_pattern(r".*Etag", "Ignore properties ending with 'Etag'"),
    SmartIgnoreRule.by_name_pattern(r"Request.*", "Ignore properties starting with 'Request'"),
)

SMART_IGNORE_PRESETS: dict[str, tuple[SmartIgnoreRule, ...]] = {
    "id_fields": ID_FIELDS,
    "timestamps": TIMESTAMPS,
    "metadata": METADATA,
    # Technical fields only; business data is still compared
    "functional": (SmartIgnoreRule.ignore_collection_ordering("Collections can be in any order"),)
    + ID_FIELDS
    + TIMESTAMPS
    + METADATA,
}


def get_preset(name: str) -> tuple[SmartIgnoreRule, ...]:
    """Look up a preset by name. Raises ValueError for unknown names."""
    try:
        return SMART_IGNORE_PRESETS[name]
    except KeyError:
        available = ", ".join(sorted(SMART_IGNORE_PRESETS))
        raise ValueError(f"Unknown smart ignore preset '{name}'. Available: {available}") from None
