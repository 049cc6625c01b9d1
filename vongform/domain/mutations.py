from typing import Iterable, List, Literal, Tuple, Union
from pydantic import BaseModel, ConfigDict, ValidationError

from vongform.domain.exceptions import InvalidMutation
from vongform.domain.models import RegistryChange, ServiceEntry, ServiceRegistry


class SetVersion(BaseModel):
    """Insert or overwrite the entry for `name`."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["set"] = "set"
    name: str
    version: str

    def apply(self, registry: ServiceRegistry) -> ServiceRegistry:
        if registry.version_of(self.name) == self.version:
            return registry
        return registry.with_entry(ServiceEntry(name=self.name, version=self.version))


class RemoveService(BaseModel):
    """Delete the entry for `name`; removing an absent service is a no-op."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["remove"] = "remove"
    name: str

    def apply(self, registry: ServiceRegistry) -> ServiceRegistry:
        return registry.without(self.name)


Mutation = Union[SetVersion, RemoveService]


def parse_set(argument: str) -> Mutation:
    """
    Parses a `--set service=version` argument.

    Only the first '=' separates name from version. An empty version
    (`service=`) is the removal spelling and yields a RemoveService.
    """
    name, sep, version = argument.partition("=")
    if not sep:
        raise InvalidMutation(argument, "expected <service>=<version>")
    if not name:
        raise InvalidMutation(argument, "expected a service name ahead of '='")
    if not version:
        return parse_remove(name)
    try:
        ServiceEntry(name=name, version=version)
    except ValidationError as e:
        raise InvalidMutation(argument, _first_error(e)) from e
    return SetVersion(name=name, version=version)


def parse_remove(argument: str) -> Mutation:
    if not argument:
        raise InvalidMutation(argument, "expected a service name")
    if "/" in argument or not argument.strip():
        raise InvalidMutation(argument, "not a valid service name")
    return RemoveService(name=argument)


def apply_all(
    registry: ServiceRegistry, mutations: Iterable[Mutation]
) -> Tuple[ServiceRegistry, List[RegistryChange]]:
    """
    Applies mutations in order (last write wins) and returns the resulting registry
    with the net changes relative to the starting one, sorted by service name.
    """
    result = registry
    for mutation in mutations:
        result = mutation.apply(result)

    changes: List[RegistryChange] = []
    for name in sorted(set(registry.entries) | set(result.entries)):
        before = registry.version_of(name)
        after = result.version_of(name)
        if before == after:
            continue
        if after is None:
            changes.append(RegistryChange(name=name, kind="removed", before=before))
        else:
            changes.append(RegistryChange(name=name, kind="set", before=before, after=after))
    return result, changes


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    return str(details[0].get("msg", error))
