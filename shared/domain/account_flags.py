"""
Denormalized account flag fields for students and tutors.

Algolia cannot filter on the absence of a field, so every profile document
carries numeric sentinels derived from the raw fields:

    has_apple_id / has_facebook_id / has_google_id  ->  1 if the provider id is set, else -1
    is_deleted                                       ->  1 if deleted_at is set, else -1

The Firestore triggers and the backfill tools both recompute them through
`compute_account_flags`, so the two paths can never disagree.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

FLAG_SET = 1
FLAG_UNSET = -1

PROVIDER_FIELDS = (
    ("has_apple_id", "apple_id"),
    ("has_facebook_id", "facebook_id"),
    ("has_google_id", "google_id"),
)

# Order matters: the first linked provider is reported as the primary method.
SIGN_IN_PROVIDERS = (
    ("facebook", "facebook_id"),
    ("google", "google_id"),
    ("apple", "apple_id"),
)


def _present(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def compute_account_flags(doc: Mapping[str, Any]) -> Dict[str, int]:
    flags: Dict[str, int] = {}
    for flag, source in PROVIDER_FIELDS:
        flags[flag] = FLAG_SET if _present(doc.get(source)) else FLAG_UNSET
    flags["is_deleted"] = FLAG_SET if _present(doc.get("deleted_at")) else FLAG_UNSET
    return flags


def flags_changed(doc: Mapping[str, Any], flags: Mapping[str, int]) -> bool:
    """True when writing `flags` would change the stored document."""
    for key, value in flags.items():
        current = doc.get(key)
        try:
            if current is None or int(current) != value:
                return True
        except (TypeError, ValueError):
            return True
    return False


def sign_in_methods(doc: Mapping[str, Any]) -> List[str]:
    methods = [name for name, field in SIGN_IN_PROVIDERS if _present(doc.get(field))]
    return methods or ["manual"]


def primary_sign_in_method(doc: Mapping[str, Any]) -> str:
    return sign_in_methods(doc)[0]
