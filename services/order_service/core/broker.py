"""
Order Service — Redis broker connection

Owned by the consumer for the lifetime of the process. Responses are kept
as bytes so an undecodable payload reaches the consumer as a poison message
instead of breaking the read.
"""
import redis.asyncio as aioredis


class BrokerConnection:
    def __init__(self, url: str, connect_timeout: float = 5.0):
        self._url = url
        self._connect_timeout = connect_timeout
        self._client: aioredis.Redis | None = None

    def get(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(
                self._url,
                socket_connect_timeout=self._connect_timeout,
            )
        return self._client

    async def reset(self):
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def close(self):
        await self.reset()
