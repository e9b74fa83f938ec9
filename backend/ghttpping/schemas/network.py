from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class AddressFamily(str, Enum):
    IPV4 = "ipv4"
    IPV6 = "ipv6"

    @property
    def label(self) -> str:
        return "IPv4" if self is AddressFamily.IPV4 else "IPv6"


class AddressScope(str, Enum):
    PRIVATE = "private"
    GLOBAL = "global"


class Address(BaseModel):
    ip: str
    family: AddressFamily
    scope: AddressScope

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return self.ip


class NetworkAdapter(BaseModel):
    name: str
    ip_addresses: list[Address] = []
    has_ipv4: bool = False
    has_ipv6: bool = False
    has_ipv4_global: bool = False
    has_ipv6_global: bool = False

    model_config = {"frozen": True}


class DnsResolution(BaseModel):
    ipv4_addresses: list[Address] = []
    ipv6_addresses: list[Address] = []

    model_config = {"frozen": True}

    def for_family(self, family: AddressFamily) -> list[Address]:
        return self.ipv4_addresses if family is AddressFamily.IPV4 else self.ipv6_addresses


class GlobalIPInfo(BaseModel):
    client_host: Address
    datetime_jst: str

    model_config = {"frozen": True}


class DnsServerInfo(BaseModel):
    interface_alias: str
    ipv4_dns_servers: list[str] = []
    ipv6_dns_servers: list[str] = []

    model_config = {"frozen": True}


class HttpPingResult(BaseModel):
    url: str
    ip_address: Address | None = None
    status_code: int | None = None
    response_time_ms: int | None = Field(default=None, ge=0)
    tls_certificate_expiry: datetime | None = None
    success: bool = False
    error_message: str | None = None
    verbose_log: str | None = None

    model_config = {"frozen": True}


class EnvironmentCheckResult(BaseModel):
    adapters: list[NetworkAdapter] = []
    ipv4_connectivity: bool = False
    ipv6_connectivity: bool = False
    dns_resolution: bool = False
    internet_available: bool = False
    ipv4_global_ip: GlobalIPInfo | None = None
    ipv6_global_ip: GlobalIPInfo | None = None
    dns_servers: list[DnsServerInfo] = []
    error_messages: list[str] = []

    model_config = {"frozen": True}


class HttpPingDualResult(BaseModel):
    url: str
    dns_resolution: DnsResolution
    ipv4: HttpPingResult
    ipv6: HttpPingResult

    model_config = {"frozen": True}


# ── Request / response bodies for the HTTP boundary ──


class PingDualRequest(BaseModel):
    url: str = Field(..., min_length=1)
    ignore_tls_errors: bool = Field(default=False, alias="ignoreTlsErrors")
    save_verbose_log: bool = Field(default=False, alias="saveVerboseLog")

    model_config = {"populate_by_name": True}


class DnsResolveRequest(BaseModel):
    domain: str = Field(..., min_length=1)


class ExportSummaryRequest(BaseModel):
    environment: EnvironmentCheckResult | None = None
    ping: HttpPingDualResult | None = None


class ExportSummary(BaseModel):
    subject: str
    body: str
    mailto: str
