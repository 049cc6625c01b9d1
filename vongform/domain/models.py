from pathlib import Path
from typing import Dict, Iterator, List, Literal, Mapping, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

REQUIREMENTS_FILE = "requirements.yaml"
VALUES_FILE = "values.yaml"
CHART_FILE = "Chart.yaml"


def _require_token(value: str, what: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{what} must be a non-empty string")
    if not value.isprintable():
        raise ValueError(f"{what} must only contain printable characters")
    return value


class ServiceEntry(BaseModel):
    """
    One service managed by the umbrella chart, pinned to a version.
    The version is an opaque token: it is never parsed, only compared for equality.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Sub-chart name, also the last segment of its store key")
    version: str = Field(..., description="Opaque chart version token")

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        _require_token(value, "Service name")
        if "/" in value:
            raise ValueError("Service name must not contain '/'")
        return value

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        return _require_token(value, "Service version")


class ServiceRegistry(BaseModel):
    """
    Immutable snapshot of the (service name -> entry) mapping for one chart.

    Storage order is irrelevant; anything that iterates the registry for output
    goes through `sorted_entries()` so the result is stable across runs.
    """
    model_config = ConfigDict(frozen=True)

    entries: Dict[str, ServiceEntry] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _keys_match_names(self) -> "ServiceRegistry":
        for key, entry in self.entries.items():
            if key != entry.name:
                raise ValueError(f"Registry key '{key}' does not match entry name '{entry.name}'")
        return self

    @classmethod
    def from_versions(cls, versions: Mapping[str, str]) -> "ServiceRegistry":
        return cls(entries={name: ServiceEntry(name=name, version=version) for name, version in versions.items()})

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def version_of(self, name: str) -> Optional[str]:
        entry = self.entries.get(name)
        return entry.version if entry else None

    def names(self) -> List[str]:
        return sorted(self.entries)

    def sorted_entries(self) -> Iterator[ServiceEntry]:
        for name in self.names():
            yield self.entries[name]

    def versions(self) -> Dict[str, str]:
        return {entry.name: entry.version for entry in self.sorted_entries()}

    def with_entry(self, entry: ServiceEntry) -> "ServiceRegistry":
        entries = dict(self.entries)
        entries[entry.name] = entry
        return ServiceRegistry(entries=entries)

    def without(self, name: str) -> "ServiceRegistry":
        if name not in self.entries:
            return self
        entries = {key: entry for key, entry in self.entries.items() if key != name}
        return ServiceRegistry(entries=entries)


class RepositoryConfig(BaseModel):
    """The Helm chart repository every rendered dependency points at."""
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1, description="Fully-qualified chart repository URL")


class ChartMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field("chart", min_length=1)
    version: str = Field("1.0.0", min_length=1)
    app_version: str = Field("1.0", min_length=1)
    description: str = "Umbrella chart generated by vongform"


class RenderedManifestPair(BaseModel):
    """
    The rendered chart documents. `requirements` and `values` are the manifest pair
    Helm reads for the umbrella chart; `chart` is the Chart.yaml written next to them.
    """
    model_config = ConfigDict(frozen=True)

    requirements: bytes
    values: bytes
    chart: bytes

    def files(self) -> List[Tuple[str, bytes]]:
        """Files in the order they are published."""
        return [
            (REQUIREMENTS_FILE, self.requirements),
            (VALUES_FILE, self.values),
            (CHART_FILE, self.chart),
        ]


class RegistryChange(BaseModel):
    """The net effect of a mutation batch on one service."""
    model_config = ConfigDict(frozen=True)

    name: str
    kind: Literal["set", "removed"]
    before: Optional[str] = None
    after: Optional[str] = None

    def describe(self) -> str:
        if self.kind == "removed":
            return f"removed {self.name} (was {self.before})"
        if self.before is None:
            return f"added {self.name} at {self.after}"
        return f"updated {self.name} from {self.before} to {self.after}"


class SyncResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    registry: ServiceRegistry
    changes: List[RegistryChange] = Field(default_factory=list)
    output_dir: Optional[Path] = None
    published: bool = False
