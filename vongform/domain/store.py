from typing import List, Optional, Protocol, Tuple


class StateStore(Protocol):
    """
    The narrow view of the key-value store the engine relies on.

    Keys are '/'-separated paths. `list` returns every (key, value) pair below a
    prefix in key order; a value of None means the key exists without a readable value.
    Implementations raise StoreUnavailable on transport failures and CorruptEntry
    when a stored value cannot be decoded to text.
    """

    async def list(self, prefix: str) -> List[Tuple[str, Optional[str]]]:
        ...

    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


def join_key(*segments: str) -> str:
    return "/".join(segment.strip("/") for segment in segments if segment.strip("/"))
