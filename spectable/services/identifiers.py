"""Platform resource identifier normalization.

The platform refers to resources either by a global ID
(``gid://shopify/Product/123``) or by the bare numeric ID (``123``). The
lookup index only ever stores the bare form, so every identifier that
crosses into the resolution engine goes through :func:`normalize_shopify_id`.
"""

import re

GID_PATTERN = re.compile(
    r"[A-Za-z][A-Za-z0-9+.-]*://[^/\s]+/(?:Product|Collection|Variant)/(\d+)"
)

RESOURCE_TYPES = ("Product", "Collection", "Variant")


def normalize_shopify_id(raw: str | int | None) -> str | None:
    """Return the canonical bare-id string for a platform resource reference.

    Global IDs for Product, Collection and Variant collapse to their numeric
    part. Anything else is returned trimmed. Empty input gives ``None``.
    The function is idempotent.
    """
    if raw is None or isinstance(raw, bool):
        return None

    value = str(raw).strip()
    if not value:
        return None

    match = GID_PATTERN.search(value)
    if match:
        return match.group(1)

    return value


def shopify_gid(resource_type: str, raw: str | int | None) -> str | None:
    """Build the global ID for a resource from any identifier form."""
    if resource_type not in RESOURCE_TYPES:
        raise ValueError(f"Unknown resource type: {resource_type}")

    normalized = normalize_shopify_id(raw)
    if normalized is None:
        return None
    if normalized.startswith("gid://"):
        return normalized
    return f"gid://shopify/{resource_type}/{normalized}"


def id_candidates(resource_type: str, raw: str | int | None) -> list[str]:
    """All stored forms a mirrored resource id may take (raw, bare, GID)."""
    candidates: list[str] = []
    if raw is not None and str(raw).strip():
        candidates.append(str(raw).strip())

    normalized = normalize_shopify_id(raw)
    gid = shopify_gid(resource_type, raw)
    for value in (normalized, gid):
        if value and value not in candidates:
            candidates.append(value)

    return candidates
