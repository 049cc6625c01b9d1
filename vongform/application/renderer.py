import copy
from typing import Any, Dict, Mapping, Optional

import yaml

from vongform.application.registry import GLOBAL_VALUES_KEY
from vongform.domain.models import ChartMetadata, RenderedManifestPair, RepositoryConfig, ServiceRegistry


def dump_yaml(document: Any) -> bytes:
    """Serializes a document the same way on every call: sorted keys, block style, UTF-8."""
    return yaml.safe_dump(
        document,
        sort_keys=True,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    ).encode("utf-8")


class ManifestRenderer:
    """
    Projects a registry into the umbrella chart documents.
    Output depends only on the registry content, the repository URL, the overrides
    and the chart metadata, never on insertion order or the time of the run.
    """

    def __init__(self, repository: RepositoryConfig, chart: Optional[ChartMetadata] = None):
        self.repository = repository
        self.chart = chart or ChartMetadata()

    def render(
        self,
        registry: ServiceRegistry,
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> RenderedManifestPair:
        return RenderedManifestPair(
            requirements=dump_yaml(self.requirements_document(registry)),
            values=dump_yaml(self.values_document(registry, overrides or {})),
            chart=dump_yaml(self.chart_document()),
        )

    def requirements_document(self, registry: ServiceRegistry) -> Dict[str, Any]:
        return {
            "dependencies": [
                {"name": entry.name, "version": entry.version, "repository": self.repository.url}
                for entry in registry.sorted_entries()
            ]
        }

    def values_document(
        self, registry: ServiceRegistry, overrides: Mapping[str, Mapping[str, Any]]
    ) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        global_values = overrides.get(GLOBAL_VALUES_KEY)
        if global_values and GLOBAL_VALUES_KEY not in registry:
            values[GLOBAL_VALUES_KEY] = copy.deepcopy(dict(global_values))
        for entry in registry.sorted_entries():
            service_values = copy.deepcopy(dict(overrides.get(entry.name, {})))
            service_values["version"] = entry.version
            values[entry.name] = service_values
        return values

    def chart_document(self) -> Dict[str, Any]:
        return {
            "apiVersion": "v1",
            "appVersion": self.chart.app_version,
            "description": self.chart.description,
            "name": self.chart.name,
            "version": self.chart.version,
        }
