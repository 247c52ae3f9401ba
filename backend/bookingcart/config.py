"""
bookingcart/config.py - Application configuration and lazy Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and exposes `get_db()` which initializes the Firebase Admin SDK (Firestore) on first use.
All other modules can import from config to access the `settings` object.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Remote marketplace API (cart storage, availability validation, checkout)
    booking_api_base_url: str = "http://localhost:5000/api"
    booking_api_timeout: float = 10.0

    currency: str = "KWD"
    money_places: int = 3  # KWD is split into 1000 fils

    post_checkout_path: str = "/dashboard/user/bookings"
    rebook_path_template: str = "/book-artist/{artist_id}"

    # Badge count hint storage: memory | firestore
    cart_count_backend: str = "memory"
    firebase_collection_prefix: str = ""
    firebase_cred_file: str = "firebase_service_account.json"
    firebase_project_id: Optional[str] = None

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_auth_uri: Optional[str] = None
    firebase_token_uri: Optional[str] = None
    firebase_auth_provider_x509_cert_url: Optional[str] = None
    firebase_client_x509_cert_url: Optional[str] = None

    clear_retry_attempts: int = 3
    clear_retry_delay_seconds: int = 30

    # In-process cart sessions: LRU bound plus idle eviction by a periodic sweep
    session_max_entries: int = 1000
    session_idle_seconds: int = 1800
    session_sweep_minutes: int = 5

    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "*"  # Comma-separated list or '*' for all

    def model_post_init(self, __context):
        if self.cart_count_backend not in ("memory", "firestore"):
            raise ValueError("CART_COUNT_BACKEND must be 'memory' or 'firestore'")


# Load settings from environment (.env file, etc.)
settings = Settings()


@lru_cache(maxsize=1)
def get_db():
    """
    Initialize Firebase Admin SDK and return a Firestore client.
    Only the Firestore cart-count store needs it, so nothing touches Firebase at import time.
    """
    import firebase_admin
    from firebase_admin import credentials, firestore

    if all([
        settings.firebase_private_key_id,
        settings.firebase_private_key,
        settings.firebase_client_email,
        settings.firebase_client_id,
        settings.firebase_auth_uri,
        settings.firebase_token_uri,
        settings.firebase_auth_provider_x509_cert_url,
        settings.firebase_client_x509_cert_url,
    ]):
        # Use environment variables for Firebase credentials (Cloud Run)
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "private_key_id": settings.firebase_private_key_id,
            "private_key": settings.firebase_private_key,
            "client_email": settings.firebase_client_email,
            "client_id": settings.firebase_client_id,
            "auth_uri": settings.firebase_auth_uri,
            "token_uri": settings.firebase_token_uri,
            "auth_provider_x509_cert_url": settings.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": settings.firebase_client_x509_cert_url,
        })
    else:
        # Use service account file (local development)
        cred = credentials.Certificate(settings.firebase_cred_file)

    try:
        firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
    except ValueError as e:
        if "already exists" not in str(e):
            raise
    return firestore.client()
