"""Recompute has_apple_id / has_facebook_id / has_google_id / is_deleted on every tutor profile.

Usage:
  python scripts/backfill_tutor_flags.py [--credentials serviceAccountKey.json] [--batch-size 500] [--dry-run]
"""
import sys

from TutorDeskFunctions.backfill import run_cli


def main() -> int:
    return run_cli("tutors", script_path=__file__)


if __name__ == "__main__":
    sys.exit(main())
