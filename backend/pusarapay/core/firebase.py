import json
import base64
import logging
from functools import lru_cache

from firebase_admin import credentials, initialize_app, get_app, firestore
from pusarapay.core.config import settings

logger = logging.getLogger("pusarapay")


def _load_credentials():
    if settings.PUSARA_FIREBASE_KEY:
        try:
            decoded_json = base64.b64decode(settings.PUSARA_FIREBASE_KEY).decode("utf-8")
            service_account_info = json.loads(decoded_json)
        except (ValueError, UnicodeDecodeError) as e:
            raise RuntimeError(f"Failed to decode or parse PUSARA_FIREBASE_KEY: {e}")

        if not service_account_info.get("project_id"):
            raise ValueError("'project_id' missing in Firebase service account JSON")

        logger.info("Loaded Firebase credentials from PUSARA_FIREBASE_KEY")
        return credentials.Certificate(service_account_info)

    if settings.GOOGLE_APPLICATION_CREDENTIALS:
        logger.info("Loaded Firebase credentials from GOOGLE_APPLICATION_CREDENTIALS")
        return credentials.Certificate(settings.GOOGLE_APPLICATION_CREDENTIALS)

    raise RuntimeError(
        "Neither PUSARA_FIREBASE_KEY nor GOOGLE_APPLICATION_CREDENTIALS is set"
    )


def init_firebase():
    try:
        get_app()
        logger.info("Firebase Admin SDK already initialized")
        return
    except ValueError:
        pass

    initialize_app(_load_credentials())
    logger.info("Firebase Admin SDK initialized")


@lru_cache(maxsize=1)
def get_firestore_client():
    """Initialize Firebase on first use and return the shared Firestore client."""
    init_firebase()
    db = firestore.client()
    logger.info("Firestore client ready")
    return db
