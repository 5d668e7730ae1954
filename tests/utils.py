from typing import Any, List, Union

from chatrelay.models import Message


class FakeTransport:
    """보낸 이벤트를 기록하는 테스트용 전송 계층"""

    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.closed = False
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("transport closed")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    def events(self, name: str) -> List[Any]:
        return [item["data"] for item in self.sent if item["event"] == name]


def make_message(message_id: Union[str, int], sender: str = "alice", body: str = "hello") -> Message:
    return Message(id=message_id, sender=sender, body=body, timestamp="2024-01-01T00:00:00Z")
