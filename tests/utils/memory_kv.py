# tests/utils/memory_kv.py
from shrnq.db.kv import KVStore


class InMemoryKVStore(KVStore):
    """Dict-backed KV store with the same contract as RedisKVStore."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def put(self, key: str, value: str) -> None:
        self.data[key] = value

    async def put_if_absent(self, key: str, value: str) -> bool:
        if key in self.data:
            return False
        self.data[key] = value
        return True

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)
