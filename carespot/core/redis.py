import json
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from carespot.core.config import settings
from carespot.core.exceptions import Unavailable

class RedisClient:
    """Registry of issued access tokens; a token absent from it is treated as revoked."""

    def __init__(self):
        self.redis = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)

    async def set_token(self, token: str, value: Dict[str, Any], expire: int):
        try:
            await self.redis.set(f"token:{token}", json.dumps(value), ex=expire)
        except RedisError as exc:
            raise Unavailable("token registry") from exc

    async def get_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self.redis.get(f"token:{token}")
        except RedisError as exc:
            raise Unavailable("token registry") from exc
        return json.loads(raw) if raw else None

    async def delete_token(self, token: str):
        try:
            await self.redis.delete(f"token:{token}")
        except RedisError as exc:
            raise Unavailable("token registry") from exc

    async def close(self):
        await self.redis.close()

redis_client = RedisClient()
