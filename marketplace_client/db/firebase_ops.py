import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)

SESSIONS_COLLECTION = "client_sessions"


class FirebaseManager:
    """
    Firebase Firestore manager shared by every FirestoreStorage.
    """
    _instance = None
    _db = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super(FirebaseManager, cls).__new__(cls)
        return cls._instance

    def __init__(self, credentials_path: Optional[str] = None):
        if self._db is None:
            self.initialize_firebase(credentials_path)

    def initialize_firebase(self, credentials_path: Optional[str] = None):
        """Initialize the Firebase Admin SDK, reusing an existing app if there is one."""
        try:
            try:
                app = firebase_admin.get_app()
                self._db = firestore.client(app)
                logger.info("Using existing Firebase app")
                return
            except ValueError:
                pass # App doesn't exist, so we need to initialize it

            if credentials_path and os.path.exists(credentials_path):
                cred = credentials.Certificate(credentials_path)
                logger.info("Firebase initialized with service account key from %s", credentials_path)
            else:
                cred = credentials.ApplicationDefault()
                logger.info("Firebase initialized with application default credentials")
            firebase_admin.initialize_app(cred)
            self._db = firestore.client()
        except Exception as e:
            logger.error("Error initializing Firebase: %s", e)
            logger.error("Set GOOGLE_APPLICATION_CREDENTIALS to a service account key to use Firestore storage.")

    def get_db(self):
        """Get Firestore database client"""
        if self._db is None:
            logger.warning("Firestore DB client accessed before initialization or initialization failed.")
        return self._db


class FirestoreStorage:
    """
    Client storage backed by one Firestore document per device.

    The document lives at client_sessions/<device_id> and holds the stored
    keys as plain fields. Without a database every read returns None and
    writes are dropped with a logged error, the same as an unavailable
    browser storage.
    """

    def __init__(self, device_id: str, db: Any = None, credentials_path: Optional[str] = None):
        self.device_id = device_id
        self.db = db if db is not None else FirebaseManager(credentials_path).get_db()

    def _document(self):
        return self.db.collection(SESSIONS_COLLECTION).document(self.device_id)

    def _snapshot(self) -> Dict[str, Any]:
        if not self.db:
            return {}
        try:
            doc = self._document().get()
            if doc.exists:
                return doc.to_dict() or {}
            return {}
        except Exception as e:
            logger.error("Error reading session document '%s': %s", self.device_id, e)
            return {}

    def get_item(self, key: str) -> Optional[str]:
        value = self._snapshot().get(key)
        return None if value is None else str(value)

    def set_item(self, key: str, value: str) -> None:
        if not self.db:
            logger.error("Database not initialized; dropping write of '%s'", key)
            return
        try:
            self._document().set(
                {key: value, "updated_at": datetime.now(timezone.utc)},
                merge=True,
            )
        except Exception as e:
            logger.error("Error saving '%s' to session document '%s': %s", key, self.device_id, e)

    def remove_item(self, key: str) -> None:
        if not self.db:
            logger.error("Database not initialized; dropping removal of '%s'", key)
            return
        try:
            self._document().set(
                {key: firestore.DELETE_FIELD, "updated_at": datetime.now(timezone.utc)},
                merge=True,
            )
        except Exception as e:
            logger.error("Error removing '%s' from session document '%s': %s", key, self.device_id, e)
