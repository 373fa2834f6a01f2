"""
Keep the denormalized account flags on student and tutor profiles current.

Called from the Firestore `on_document_written` triggers. The trigger's own
update fires the trigger again; the second run finds the flags unchanged and
writes nothing, which ends the loop.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from google.api_core.exceptions import GoogleAPICallError

from shared.domain.account_flags import compute_account_flags, flags_changed

logger = logging.getLogger("tutordesk_functions.sync")


def sync_account_flags(snapshot: Any, *, collection: str) -> Optional[Dict[str, int]]:
    """
    Recompute the flags for a written profile document.

    Returns the flags that were written, or None when the document was
    deleted or already up to date.
    """
    if snapshot is None or not getattr(snapshot, "exists", False):
        logger.debug("flag_sync_skipped_delete", extra={"collection": collection})
        return None

    data = snapshot.to_dict() or {}
    flags = compute_account_flags(data)
    if not flags_changed(data, flags):
        return None

    try:
        snapshot.reference.update(flags)
    except GoogleAPICallError:
        logger.exception("flag_sync_failed", extra={"collection": collection, "entity_id": snapshot.id})
        # Let the platform retry the event.
        raise

    logger.info("flag_sync_updated", extra={"collection": collection, "entity_id": snapshot.id, "context": str(flags)})
    return flags
