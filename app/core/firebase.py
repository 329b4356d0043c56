"""Firebase Admin SDK adapter: the external identity provider."""

import asyncio
import json
import os
from datetime import date

import firebase_admin
from firebase_admin import auth, credentials
from structlog import get_logger

from app.schemas.auth import ExternalProfile

logger = get_logger(__name__)

# Tolerated clock difference between us and Google when checking iat/exp
CLOCK_SKEW_SECONDS = 10

_firebase_app: firebase_admin.App | None = None


def _load_credentials(
    credentials_path: str | None, config_json: str | None
) -> credentials.Certificate | None:
    if config_json:
        logger.info("firebase_credentials_source", source="json")
        return credentials.Certificate(json.loads(config_json))
    if credentials_path and os.path.exists(credentials_path):
        logger.info("firebase_credentials_source", source="file", path=credentials_path)
        return credentials.Certificate(credentials_path)
    return None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> firebase_admin.App:
    """
    Initialize the Firebase Admin SDK once per process.

    The service account is taken from the raw JSON string when set, then from
    the JSON file path; otherwise application default credentials are used.
    """
    global _firebase_app

    if _firebase_app is not None:
        return _firebase_app

    cred = _load_credentials(firebase_credentials_path, firebase_config_json)
    # initialize_app(None) falls back to application default credentials
    _firebase_app = firebase_admin.initialize_app(cred)
    return _firebase_app


async def verify_firebase_token(id_token: str) -> dict:
    """
    Verify a Firebase ID token.

    Signature checks may fetch Google's public certificates, so the SDK call
    runs in a worker thread.

    Returns:
        Decoded token claims (uid, email, name, ...)

    Raises:
        ValueError: If the token is invalid, expired or cannot be verified
    """
    try:
        claims = await asyncio.to_thread(
            auth.verify_id_token, id_token, clock_skew_seconds=CLOCK_SKEW_SECONDS
        )
    except auth.InvalidIdTokenError as e:
        logger.info("firebase_token_rejected", error=str(e))
        raise ValueError(f"Invalid Firebase ID token: {e!s}") from e
    except (auth.CertificateFetchError, ValueError) as e:
        logger.warning("firebase_token_verification_failed", error=str(e))
        raise ValueError(f"Token verification failed: {e!s}") from e

    return claims


def profile_from_firebase_claims(
    claims: dict,
    gender: str | None = None,
    date_of_birth: date | None = None,
) -> ExternalProfile:
    """
    Build an external profile from verified Firebase claims.

    Raises:
        ValueError: If the token carries no email
    """
    email = claims.get("email")
    if not email:
        raise ValueError("Email is required from Firebase token")

    name = (claims.get("name") or "").strip() or email

    return ExternalProfile(
        external_id=claims["uid"],
        email=email,
        display_name=name[:255],
        gender=gender,
        date_of_birth=date_of_birth,
    )
