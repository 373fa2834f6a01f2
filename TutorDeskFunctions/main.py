"""
Firestore triggers (Cloud Functions for Firebase, Python runtime).

Deploy with `firebase deploy --only functions`; the function names match the
ones the admin console already has deployed.
"""

from __future__ import annotations

import logging

from firebase_functions import firestore_fn

from TutorDeskFunctions.sync import sync_account_flags
from shared.config import load_functions_config
from shared.firebase_app import init_firebase_app
from shared.logging_setup import setup_logging

setup_logging(service_name="tutordesk_functions", log_to_file_default="false")
logger = logging.getLogger("tutordesk_functions")

init_firebase_app(load_functions_config())


@firestore_fn.on_document_written(document="students/{studentId}")
def students_to_algolia(event: firestore_fn.Event[firestore_fn.Change[firestore_fn.DocumentSnapshot]]) -> None:
    sync_account_flags(event.data.after if event.data else None, collection="students")


@firestore_fn.on_document_written(document="tutors/{tutorId}")
def tutors_to_algolia(event: firestore_fn.Event[firestore_fn.Change[firestore_fn.DocumentSnapshot]]) -> None:
    sync_account_flags(event.data.after if event.data else None, collection="tutors")
