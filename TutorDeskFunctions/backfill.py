"""
One-off recomputation of the account flags over a whole collection.

Shared by `scripts/backfill_student_flags.py` and
`scripts/backfill_tutor_flags.py`.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from shared.config import load_functions_config
from shared.domain.account_flags import compute_account_flags
from shared.firebase_app import firestore_client
from shared.logging_setup import setup_logging

logger = logging.getLogger("tutordesk_functions.backfill")

# Firestore rejects write batches above 500 operations.
MAX_BATCH_SIZE = 500


@dataclass
class BackfillResult:
    collection: str
    scanned: int = 0
    updated: int = 0
    batches: int = 0
    dry_run: bool = False


def backfill_collection(db, collection: str, batch_size: int = MAX_BATCH_SIZE, *, dry_run: bool = False) -> BackfillResult:
    """
    Stream every document in `collection` and write its recomputed flags.

    Updates are queued in a Firestore WriteBatch and committed every
    `batch_size` operations, then once more for the remainder. With
    `dry_run` nothing is written; the counts describe what would be.
    """
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")

    result = BackfillResult(collection=collection, dry_run=dry_run)
    batch = None if dry_run else db.batch()
    pending = 0

    for snapshot in db.collection(collection).stream():
        result.scanned += 1
        flags = compute_account_flags(snapshot.to_dict() or {})
        if batch is not None:
            batch.update(snapshot.reference, flags)
        pending += 1
        result.updated += 1

        if pending >= batch_size:
            if batch is not None:
                batch.commit()
                batch = db.batch()
            result.batches += 1
            pending = 0
            logger.info(
                "backfill_progress",
                extra={"collection": collection, "context": f"updated={result.updated} batches={result.batches}"},
            )

    if pending:
        if batch is not None:
            batch.commit()
        result.batches += 1

    logger.info(
        "backfill_done",
        extra={
            "collection": collection,
            "context": f"scanned={result.scanned} updated={result.updated} batches={result.batches} dry_run={dry_run}",
        },
    )
    return result


def _parse_args(collection: str, default_credentials: str, argv: Optional[Sequence[str]]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description=f"Recompute has_*_id / is_deleted flags on every {collection} document.")
    p.add_argument(
        "--credentials",
        default=default_credentials,
        help="Service account JSON (default: serviceAccountKey.json beside the script, when present)",
    )
    p.add_argument("--batch-size", type=int, default=None, help=f"Writes per batch (1-{MAX_BATCH_SIZE})")
    p.add_argument("--dry-run", action="store_true", help="Count documents without writing")
    return p.parse_args(argv)


def run_cli(collection: str, *, script_path: str, argv: Optional[Sequence[str]] = None) -> int:
    """Entry point shared by the backfill scripts; returns the process exit code."""
    default_credentials = str(Path(script_path).resolve().parent / "serviceAccountKey.json")
    args = _parse_args(collection, default_credentials, argv)
    setup_logging(service_name="tutordesk_backfill", log_to_file_default="false")

    try:
        cfg = load_functions_config()
        batch_size = args.batch_size or cfg.backfill_batch_size
        credentials_path = args.credentials or None
        if credentials_path == default_credentials and not Path(credentials_path).exists():
            # No key file beside the script: FIREBASE_SERVICE_ACCOUNT or ADC.
            credentials_path = None
        db = firestore_client(cfg, credentials_path=credentials_path)
        result = backfill_collection(db, collection, batch_size, dry_run=args.dry_run)
    except Exception:
        logger.exception("backfill_failed", extra={"collection": collection})
        return 1

    print(
        f"{collection}: scanned={result.scanned} updated={result.updated} "
        f"batches={result.batches}{' (dry run)' if result.dry_run else ''}"
    )
    return 0
