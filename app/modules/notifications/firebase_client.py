import json
import logging
import firebase_admin
from firebase_admin import credentials, messaging
from app.config import settings

logger = logging.getLogger(__name__)


class FirebaseClient:
    _app = None
    _initialized = False

    @classmethod
    def _load_credentials(cls):
        if settings.firebase_service_account_json:
            return credentials.Certificate(json.loads(settings.firebase_service_account_json))
        if settings.firebase_service_account_path:
            return credentials.Certificate(settings.firebase_service_account_path)
        return None

    @classmethod
    def get_messaging(cls):
        """firebase_admin.messaging once the default app is up, None when push is not configured."""
        if not cls._initialized:
            cls._initialized = True
            try:
                cred = cls._load_credentials()
                if cred is None:
                    logger.warning("Firebase credentials not configured. Push notifications disabled.")
                else:
                    try:
                        cls._app = firebase_admin.get_app()
                    except ValueError:
                        cls._app = firebase_admin.initialize_app(cred)
                        logger.info("Firebase Admin SDK initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize Firebase Admin SDK: {str(e)}")
                cls._app = None
        return messaging if cls._app is not None else None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._app is not None

    @classmethod
    def reset(cls):
        cls._app = None
        cls._initialized = False


def get_messaging():
    return FirebaseClient.get_messaging()
