"""
Reservation Service — Redis broker connection

One BrokerConnection is created at startup and handed to the publisher.
The underlying client is opened lazily on first use and dropped on reset(),
so the next call reconnects.
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
