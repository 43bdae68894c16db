# slotkeeper/services/push_notification_service.py
"""
Push notification delivery to a user's registered devices.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import DeliveryException
from ..core.run_context import RunContext
from ..integrations.expo_push_client import ExpoPushClient, ExpoPushMessage
from ..repositories.user_repository import PushTokenRepository
from .base import BaseService


class PushNotificationService(BaseService):
    """Service for sending push notifications through Expo."""

    def __init__(
        self,
        db: Session,
        run_context: Optional[RunContext] = None,
        client: Optional[ExpoPushClient] = None,
        token_repository: Optional[PushTokenRepository] = None,
    ) -> None:
        super().__init__(db, run_context)
        self.client = client or ExpoPushClient()
        self.token_repository = token_repository or PushTokenRepository(db, self.run_context)

    @BaseService.measure_operation("send_push_notification")
    def send_to_user(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, int]:
        """
        Send a notification to all of a user's devices.

        Tokens reported invalid by Expo are removed from the user's registry.

        Returns:
            dict with 'sent', 'failed' and 'pruned' counts

        Raises:
            DeliveryException: If every device failed to receive the message
        """
        tokens = self.token_repository.get_tokens_for_user(user_id)
        if not tokens:
            self.logger.info(f"User {user_id} has no push tokens; skipping")
            return {"sent": 0, "failed": 0, "pruned": 0}

        messages = [
            ExpoPushMessage(to=token, title=title, body=body, data=dict(data or {}))
            for token in tokens
        ]
        result = self.client.send(messages)

        pruned = 0
        if result.invalid_tokens:
            with self.transaction():
                pruned = self.token_repository.delete_tokens(user_id, set(result.invalid_tokens))
            self.logger.info(f"Removed {pruned} invalid push tokens from user {user_id}")

        if result.sent == 0 and result.failed > 0:
            raise DeliveryException(
                f"Push delivery failed for all {result.failed} devices of user {user_id}",
                details={"failed": result.failed, "pruned": pruned},
            )
        return {"sent": result.sent, "failed": result.failed, "pruned": pruned}
