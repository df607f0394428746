"""Fake notification dispatcher for development and testing.

Records every request in memory instead of delivering it.
"""

from uuid import uuid4

from marketplace.messaging.port import MessageReceipt, MessageRequest, NotificationDispatcher, Topic


class FakeNotificationDispatcher(NotificationDispatcher):
    def __init__(self) -> None:
        self.requests: list[MessageRequest] = []
        self.should_fail: bool = False

    def request_message(self, request: MessageRequest) -> MessageReceipt:
        if self.should_fail:
            return MessageReceipt(accepted=False, error="Messaging service unavailable")
        self.requests.append(request)
        return MessageReceipt(accepted=True, message_id=f"fake_msg_{uuid4().hex[:12]}")

    def sent_to(self, recipient_id: str, topic: Topic | None = None) -> list[MessageRequest]:
        return [
            r for r in self.requests if r.recipient_id == str(recipient_id) and (topic is None or r.topic == topic)
        ]

    def reset(self) -> None:
        self.requests.clear()
        self.should_fail = False
