"""Fake notification dispatcher: records messages in memory for tests."""

from uuid import uuid4

from omnistock.notification.port import NotificationPort


class FakeNotificationDispatcher(NotificationPort):
    def __init__(self):
        self.sent_messages: list[dict] = []
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Notification delivery failed"

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Notification delivery failed",
        should_raise: bool = False,
    ):
        """Configure the fake dispatcher behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.should_raise = should_raise

    def send(self, channel: str, recipient: str, subject: str, body: str) -> dict:
        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"msg-{uuid4().hex[:12]}"
        self.sent_messages.append(
            {
                "message_id": message_id,
                "channel": channel,
                "recipient": recipient,
                "subject": subject,
                "body": body,
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent_messages.clear()
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Notification delivery failed"
