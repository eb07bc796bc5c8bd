from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Annotated, Any, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, WrapSerializer


def _freeze(value: dict) -> MappingProxyType:
    return MappingProxyType(value)


def _thaw(value: Any, handler) -> Any:
    return handler(dict(value))


K = TypeVar("K")
V = TypeVar("V")

# A dict that is read-only once validated and serialized as a plain object.
ReadOnlyMap = Annotated[dict[K, V], AfterValidator(_freeze), WrapSerializer(_thaw)]


class PortConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    published_port: int = Field(..., ge=1, le=65535, description="Port exposed on the network")
    network: str | None = Field(None, description="Network to publish on, default network when unset")
    whitelisted_cidrs: tuple[str, ...] = Field((), description="Addresses allowed to connect")


class VolumeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    size: str = Field("10", description="Volume size in GB")


class _ServiceDocument(BaseModel):
    """Fields shared by the create document and the redeploy document.

    Deeply immutable: sequences are tuples and mappings are read-only views,
    so a compiled document cannot drift from what was validated.
    """

    model_config = ConfigDict(frozen=True, validate_default=True)

    application: str = Field(..., serialization_alias="namespace")
    # Part of the URL, never of the body.
    service: str = Field(..., exclude=True)
    repository: str
    repository_tag: str
    container_model: str = "x1"
    restart_policy: str = Field("no", description="no|always[:max]|on-failure[:max]")
    container_command: tuple[str, ...] | None = None
    container_entrypoint: tuple[str, ...] | None = None
    container_user: str | None = None
    container_workdir: str | None = None
    container_environment: tuple[str, ...] = ()
    volumes: ReadOnlyMap[str, VolumeConfig] | None = None
    links: ReadOnlyMap[str, str] = Field(default_factory=dict)
    container_network: ReadOnlyMap[str, ReadOnlyMap[str, tuple[str, ...]]] = Field(default_factory=dict)
    container_ports: ReadOnlyMap[str, tuple[PortConfig, ...]] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Wire form: unset optional overrides are omitted, collections never are."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RedeploySpec(_ServiceDocument):
    """Update document for an existing service."""


class ServiceSpec(_ServiceDocument):
    container_number: int = Field(1, ge=1, description="Number of containers to run")
    pool: str | None = Field(None, description="Dedicated host pool")

    def reduced(self) -> RedeploySpec:
        """Build the redeploy view; container count and pool are create-only."""
        data = self.model_dump(exclude={"container_number", "pool"})
        data["service"] = self.service
        return RedeploySpec(**data)


@dataclass(frozen=True)
class AddOptions:
    """Raw `service add` / `service redeploy` flag values, as typed by the operator."""

    model: str = "x1"
    number: int = 1
    restart: str = "no"
    command: str = ""
    entrypoint: str = ""
    user: str = ""
    workdir: str = ""
    tag: str = ""
    pool: str = ""
    environment: tuple[str, ...] = ()
    volumes: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    networks: tuple[str, ...] = ()
    network_allow: tuple[str, ...] = ()
    publish: tuple[str, ...] = ()
    gateways: tuple[str, ...] = ()
    batch: bool = False
    redeploy: bool = False
