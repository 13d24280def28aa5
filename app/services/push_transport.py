"""
Push provider integration.

`PushTransport` is the seam the notification dispatcher talks to. The
production implementation wraps Firebase Cloud Messaging through
`firebase-admin`; tests plug in an in-memory transport.
"""
from __future__ import annotations

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from ..config import settings
from ..exceptions import TransportFailure

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "social-feed"
# FCM rejects multicast messages addressed to more than 500 tokens
MAX_MULTICAST_TOKENS = 500


class PushFailure(str, enum.Enum):
    INVALID_TOKEN = "invalid_token"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class PushResult:
    token: str
    success: bool
    failure: Optional[PushFailure] = None
    detail: Optional[str] = None


class PushTransport(Protocol):
    async def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Dict[str, str],
    ) -> List[PushResult]:
        ...


def classify_send_error(exc: Optional[Exception]) -> PushFailure:
    """Tell dead device tokens apart from every other delivery failure."""
    if isinstance(exc, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return PushFailure.INVALID_TOKEN
    if isinstance(exc, firebase_exceptions.InvalidArgumentError) and \
            "registration token" in str(exc).lower():
        return PushFailure.INVALID_TOKEN
    return PushFailure.TRANSPORT


class FirebasePushTransport:
    """Multicast delivery through the Firebase Admin SDK."""

    def __init__(self, app: firebase_admin.App):
        self.app = app

    @staticmethod
    def build_message(tokens: Sequence[str], title: str, body: str, data: Dict[str, str]) -> messaging.MulticastMessage:
        return messaging.MulticastMessage(
            notification=messaging.Notification(title=title, body=body),
            data=data,
            tokens=list(tokens),
            android=messaging.AndroidConfig(
                notification=messaging.AndroidNotification(
                    sound="default", channel_id="default"),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound="default")),
            ),
        )

    async def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Dict[str, str],
    ) -> List[PushResult]:
        results: List[PushResult] = []
        for start in range(0, len(tokens), MAX_MULTICAST_TOKENS):
            chunk = list(tokens[start:start + MAX_MULTICAST_TOKENS])
            message = self.build_message(chunk, title, body, data)
            try:
                # The SDK is blocking; keep it off the event loop
                batch = await asyncio.to_thread(
                    messaging.send_each_for_multicast, message, app=self.app)
            except (firebase_exceptions.FirebaseError, ValueError) as e:
                raise TransportFailure(f"FCM multicast failed: {e}") from e

            for token, response in zip(chunk, batch.responses):
                if response.success:
                    results.append(PushResult(token=token, success=True))
                else:
                    results.append(PushResult(
                        token=token,
                        success=False,
                        failure=classify_send_error(response.exception),
                        detail=str(response.exception),
                    ))
        return results


def _load_credentials() -> Optional[credentials.Certificate]:
    if settings.firebase_service_account_key:
        return credentials.Certificate(json.loads(settings.firebase_service_account_key))
    if settings.firebase_credentials_file:
        return credentials.Certificate(settings.firebase_credentials_file)
    return None


def get_firebase_app() -> Optional[firebase_admin.App]:
    """Return the initialized Firebase app, or None when push is not configured."""
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        pass

    try:
        cert = _load_credentials()
    except (ValueError, OSError) as e:
        logger.error(f"Failed to load Firebase credentials: {e}")
        return None

    if cert is None:
        logger.warning(
            "Firebase credentials not provided. Push notifications will be disabled.")
        return None

    try:
        app = firebase_admin.initialize_app(cert, name=FIREBASE_APP_NAME)
    except ValueError as e:
        logger.error(f"Failed to initialize Firebase: {e}")
        return None
    logger.info("Firebase initialized successfully")
    return app


def build_push_transport() -> Optional[PushTransport]:
    app = get_firebase_app()
    if app is None:
        return None
    return FirebasePushTransport(app)
