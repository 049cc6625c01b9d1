import os
from pathlib import Path
from typing import Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field

from vongform.domain.exceptions import ConfigurationError
from vongform.domain.models import ChartMetadata, RepositoryConfig
from vongform.infrastructure.consul_client import DEFAULT_CONSUL_URL, DEFAULT_TIMEOUT_SECONDS

DEFAULT_OUTPUT_DIR = "chart"
DEFAULT_REPOSITORY = "https://charts.helm.sh/stable"
DEFAULT_PREFIX = "umbrella"


class Settings(BaseModel):
    """
    Everything a run needs, resolved once at startup: explicit flags first,
    then environment variables, then built-in defaults.
    """
    model_config = ConfigDict(frozen=True)

    output_dir: Path = Field(Path(DEFAULT_OUTPUT_DIR))
    repository: RepositoryConfig = Field(default_factory=lambda: RepositoryConfig(url=DEFAULT_REPOSITORY))
    prefix: str = Field(DEFAULT_PREFIX, min_length=1, pattern=r"^[^/].*[^/]$|^[^/]$")
    consul_url: str = Field(DEFAULT_CONSUL_URL, min_length=1)
    consul_token: Optional[str] = None
    timeout: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0)
    dry_run: bool = False
    chart: ChartMetadata = Field(default_factory=ChartMetadata)


def resolve_settings(
    output: Optional[str] = None,
    repository: Optional[str] = None,
    prefix: Optional[str] = None,
    consul_url: Optional[str] = None,
    timeout: Optional[float] = None,
    dry_run: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    env = os.environ if environ is None else environ
    try:
        return Settings(
            output_dir=Path(output or env.get("VONGFORM_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR),
            repository=RepositoryConfig(url=repository or env.get("VONGFORM_DEFAULT_REPOSITORY") or DEFAULT_REPOSITORY),
            prefix=prefix or env.get("VONGFORM_PREFIX") or DEFAULT_PREFIX,
            consul_url=_with_scheme(consul_url or env.get("CONSUL_HTTP_ADDR") or DEFAULT_CONSUL_URL),
            consul_token=env.get("CONSUL_HTTP_TOKEN") or None,
            timeout=timeout if timeout is not None else float(env.get("VONGFORM_TIMEOUT") or DEFAULT_TIMEOUT_SECONDS),
            dry_run=dry_run,
            chart=ChartMetadata(
                name=env.get("VONGFORM_CHART_NAME") or "chart",
                version=env.get("VONGFORM_CHART_VERSION") or "1.0.0",
            ),
        )
    except ValueError as e:
        # covers pydantic's ValidationError and a non-numeric VONGFORM_TIMEOUT
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _with_scheme(address: str) -> str:
    # CONSUL_HTTP_ADDR is commonly set as host:port
    return address if "://" in address else f"http://{address}"
