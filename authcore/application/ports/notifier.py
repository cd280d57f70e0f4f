from typing import Protocol


class Notifier(Protocol):
    async def send(self, recipient: str, subject: str, body: str) -> bool:
        ...
