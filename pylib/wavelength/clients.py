'''Live application consumers that can be told about new episodes directly.'''

import asyncio
from abc import ABC, abstractmethod
from typing import Any

VISIBLE = 'visible'
HIDDEN = 'hidden'


class Client(ABC):
    '''An open application window (or any consumer standing in for one).'''

    id: str
    visibility_state: str = VISIBLE

    @abstractmethod
    async def post_message(self, message: dict[str, Any]) -> None:
        '''Deliver a structured message to the consumer.'''

    @property
    def hidden(self) -> bool:
        return self.visibility_state == HIDDEN


class QueueClient(Client):
    '''Consumer that receives messages on an asyncio.Queue.'''

    def __init__(self, client_id: str, visibility_state: str = VISIBLE) -> None:
        self.id = client_id
        self.visibility_state = visibility_state
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def post_message(self, message: dict[str, Any]) -> None:
        await self.queue.put(message)


class ClientHub:
    '''Registry of currently open consumers.'''

    def __init__(self) -> None:
        self._clients: dict[str, Client] = {}

    def register(self, client: Client) -> None:
        self._clients[client.id] = client

    def unregister(self, client_id: str) -> None:
        self._clients.pop(client_id, None)

    async def match_all(self) -> list[Client]:
        return list(self._clients.values())
