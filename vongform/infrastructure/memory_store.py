import logging
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class InMemoryStore:
    """
    Dictionary-backed StateStore.
    Listing matches keys by plain string prefix, like Consul's recursive reads.
    """

    def __init__(self, initial: Optional[Dict[str, Optional[str]]] = None):
        self.data: Dict[str, Optional[str]] = dict(initial or {})
        self.writes: List[Tuple[str, str, Optional[str]]] = []

    async def list(self, prefix: str) -> List[Tuple[str, Optional[str]]]:
        return sorted((key, value) for key, value in self.data.items() if key.startswith(prefix))

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def put(self, key: str, value: str) -> None:
        logger.debug(f"put {key}={value}")
        self.data[key] = value
        self.writes.append(("put", key, value))

    async def delete(self, key: str) -> None:
        logger.debug(f"delete {key}")
        self.data.pop(key, None)
        self.writes.append(("delete", key, None))
