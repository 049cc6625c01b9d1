import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from vongform.domain.exceptions import CorruptEntry, StoreUnavailable
from vongform.domain.models import ServiceEntry, ServiceRegistry
from vongform.domain.store import StateStore, join_key

logger = logging.getLogger(__name__)

GLOBAL_VALUES_KEY = "global"


def values_prefix(prefix: str) -> str:
    """Store prefix holding the per-service value overrides for a registry prefix."""
    return f"{prefix.strip('/')}-values"


async def load_registry(store: StateStore, prefix: str) -> ServiceRegistry:
    """
    Reads every `<prefix>/<service>` key and builds the registry.

    Keys without a readable value are skipped. Keys nested below a service name
    belong to someone else and are ignored as well.
    """
    folder = join_key(prefix) + "/"
    entries: Dict[str, ServiceEntry] = {}

    for key, value in await store.list(folder):
        name = key[len(folder):]
        if not name or "/" in name:
            continue
        if value is None:
            logger.debug(f"Key '{key}' has no value, treating it as absent.")
            continue
        if not value.strip():
            raise CorruptEntry(key, "version is empty")
        try:
            entries[name] = ServiceEntry(name=name, version=value)
        except ValueError as e:
            raise CorruptEntry(key, str(e)) from e

    registry = ServiceRegistry(entries=entries)
    logger.info(f"Loaded {len(registry)} service(s) from '{folder}'.")
    return registry


def diff(old: ServiceRegistry, new: ServiceRegistry) -> Set[str]:
    """Names whose version differs between the two registries, including additions and removals."""
    names = set(old.entries) | set(new.entries)
    return {name for name in names if old.version_of(name) != new.version_of(name)}


async def persist_registry(
    store: StateStore, prefix: str, old: ServiceRegistry, new: ServiceRegistry
) -> Set[str]:
    """
    Writes only what changed: a put per added or updated entry, a delete per removed one.

    If a write fails, the keys touched so far (the failing one included, since the
    store may have applied it before the error) are put back to their `old` value
    and the original StoreUnavailable is re-raised.
    """
    changed = diff(old, new)
    touched: List[str] = []
    try:
        for name in sorted(changed):
            touched.append(name)
            await _write(store, prefix, name, new.version_of(name))
    except StoreUnavailable:
        await rollback_registry(store, prefix, old, touched)
        raise
    if changed:
        logger.info(f"Persisted {len(changed)} change(s) under '{join_key(prefix)}/'.")
    return changed


async def rollback_registry(
    store: StateStore, prefix: str, old: ServiceRegistry, names: Iterable[str]
) -> Set[str]:
    """
    Best-effort: restores each named key to its version in `old`, deleting keys
    `old` did not have. Returns the names that could not be restored.
    """
    unrestored: Set[str] = set()
    for name in names:
        try:
            await _write(store, prefix, name, old.version_of(name))
        except StoreUnavailable as e:
            logger.error(f"Could not restore '{join_key(prefix, name)}': {e}")
            unrestored.add(name)
    if unrestored:
        logger.error(f"Registry under '{join_key(prefix)}/' left partially updated: {sorted(unrestored)}.")
    else:
        logger.warning(f"Rolled back the registry under '{join_key(prefix)}/'.")
    return unrestored


async def _write(store: StateStore, prefix: str, name: str, version: Optional[str]) -> None:
    key = join_key(prefix, name)
    if version is None:
        await store.delete(key)
    else:
        await store.put(key, version)


async def load_overrides(
    store: StateStore, prefix: str, services: Iterable[str]
) -> Dict[str, Dict[str, Any]]:
    """
    Builds the values overrides tree for the given services and `global`.

    `<prefix>-values/<service>/a/b` holding "x" becomes {"<service>": {"a": {"b": "x"}}}.
    When a path is both a leaf and a parent, the nested mapping replaces the leaf.
    """
    root = values_prefix(prefix) + "/"
    wanted = set(services) | {GLOBAL_VALUES_KEY}
    overrides: Dict[str, Dict[str, Any]] = {}

    for key, value in await store.list(root):
        if value is None:
            continue
        segments = [segment for segment in key[len(root):].split("/") if segment]
        if len(segments) < 2 or segments[0] not in wanted:
            continue
        _insert(overrides.setdefault(segments[0], {}), segments[1:], value)

    return overrides


def _insert(tree: Dict[str, Any], path: Iterable[str], value: str) -> None:
    *parents, leaf = list(path)
    current = tree
    for segment in parents:
        child: Optional[Any] = current.get(segment)
        if not isinstance(child, dict):
            child = {}
            current[segment] = child
        current = child
    if isinstance(current.get(leaf), dict):
        return
    current[leaf] = value
