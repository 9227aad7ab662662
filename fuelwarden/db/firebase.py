import logging

import firebase_admin
from firebase_admin import auth, credentials, firestore_async

from fuelwarden.core.config import settings

logger = logging.getLogger(__name__)


def initialize_firebase():
    """
    Initialize the Firebase Admin SDK.

    Uses the service account file from GOOGLE_APPLICATION_CREDENTIALS when it is
    set, otherwise falls back to application default credentials.
    """
    try:
        firebase_admin.get_app()
    except ValueError:
        if settings.GOOGLE_APPLICATION_CREDENTIALS:
            cred = credentials.Certificate(settings.GOOGLE_APPLICATION_CREDENTIALS)
        else:
            cred = credentials.ApplicationDefault()
        firebase_admin.initialize_app(
            cred,
            {
                "projectId": settings.FIREBASE_PROJECT_ID,
            },
        )
        logger.info(f"Firebase initialized for project '{settings.FIREBASE_PROJECT_ID}'.")


def get_firestore_client():
    """
    Returns a Firestore client for the FuelWarden database.
    """
    return firestore_async.client(database_id=settings.FIRESTORE_DATABASE_ID)


def get_firebase_auth():
    """
    Returns a Firebase Auth client.
    """
    return auth
