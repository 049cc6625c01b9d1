import base64
import binascii
from typing import Any, Dict, Optional, Tuple

from vongform.domain.exceptions import CorruptEntry


class ConsulTranslator:
    """
    Anti-corruption layer that translates raw Consul KV JSON entries into (key, text) pairs.
    """

    @staticmethod
    def to_pair(raw_entry: Dict[str, Any]) -> Tuple[str, Optional[str]]:
        """
        Decodes one entry of a `GET /v1/kv/...` response.

        Args:
            raw_entry (Dict[str, Any]): The JSON object returned by Consul for one key.

        Returns:
            Tuple[str, Optional[str]]: The key and its UTF-8 value, or None when Consul
            holds no value for the key (folders and keys written without a body).
        """
        if not isinstance(raw_entry, dict):
            raise CorruptEntry("<unknown>", f"expected a JSON object, got {raw_entry!r}")

        key = raw_entry.get('Key')
        if not key:
            raise CorruptEntry("<unknown>", f"entry has no Key field: {raw_entry!r}")

        raw_value = raw_entry.get('Value')
        if raw_value is None:
            return key, None

        try:
            decoded = base64.b64decode(raw_value, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise CorruptEntry(key, f"value is not valid base64 ({e})") from e

        try:
            return key, decoded.decode('utf-8')
        except UnicodeDecodeError as e:
            raise CorruptEntry(key, f"value is not valid UTF-8 ({e})") from e
