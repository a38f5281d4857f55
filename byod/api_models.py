from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CatalogEntry(BaseModel):
    """One node/service pair from ``GET /v1/catalog/service/<name>``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    service_id: str = Field(..., alias="ServiceID", min_length=1)
    service_name: str = Field(..., alias="ServiceName", min_length=1)
    address: str = Field("", alias="Address", description="Address of the node running the service")
    service_address: str | None = Field(None, alias="ServiceAddress", description="Optional per-service override")
    service_port: int | None = Field(None, alias="ServicePort", ge=0, le=65535)
    service_tags: list[str] = Field(default_factory=list, alias="ServiceTags")
    node: str | None = Field(None, alias="Node")

    @field_validator("service_tags", mode="before")
    @classmethod
    def _null_tags(cls, v):
        # Consul sends null for a service registered without tags.
        return [] if v is None else v


class ConnectRequest(BaseModel):
    address: str = Field(..., description="IP address or hostname of the Consul agent")
    port: int | None = Field(None, ge=1, le=65535, description="Defaults to BYOD_CONSUL_PORT")


class HostRequest(BaseModel):
    id: str = Field(..., min_length=1)
    mac: str = Field(..., min_length=1)
    ip_addresses: list[str] = Field(..., min_length=1)
    location: str | None = None


class StaticServiceRequest(BaseModel):
    name: str = Field(..., min_length=1)
    ip_addresses: list[str] = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    protocol: str = Field("TCP", pattern="^(TCP|UDP)$")
    icon: str = "list"
    host_id: str | None = Field(None, description="Owning host, if known")


class ConnectionRequest(BaseModel):
    host_id: str
    service_id: str
