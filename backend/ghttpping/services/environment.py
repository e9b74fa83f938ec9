import asyncio
import logging

import dns.exception

from ghttpping.config import settings
from ghttpping.core.errors import ErrorCode
from ghttpping.schemas.network import AddressFamily, DnsServerInfo, EnvironmentCheckResult
from ghttpping.services.adapter_inventory import AdapterInventoryResult, list_adapters
from ghttpping.services.address_classifier import classify, is_ip_literal
from ghttpping.services.dns_resolver import ResolveOutcome, resolve, system_nameservers
from ghttpping.services.global_ip import GlobalIPLookupResult, lookup_global_ip

logger = logging.getLogger(__name__)


async def _adapters() -> AdapterInventoryResult:
    return await asyncio.to_thread(list_adapters)


def _discover_dns_servers() -> list[DnsServerInfo]:
    v4: list[str] = []
    v6: list[str] = []
    for server in system_nameservers():
        if not is_ip_literal(server):
            continue
        address = classify(server)
        (v4 if address.family is AddressFamily.IPV4 else v6).append(address.ip)
    if not v4 and not v6:
        return []
    return [DnsServerInfo(interface_alias="system", ipv4_dns_servers=v4, ipv6_dns_servers=v6)]


async def _dns_servers() -> tuple[list[DnsServerInfo], str | None]:
    timeout = settings.DNS_SERVER_DISCOVERY_TIMEOUT
    try:
        servers = await asyncio.wait_for(asyncio.to_thread(_discover_dns_servers), timeout=timeout)
    except asyncio.TimeoutError:
        return [], f"DNS server discovery timed out after {timeout:.0f}s"
    except (dns.exception.DNSException, OSError) as exc:
        logger.warning("DNS server discovery failed: %s", exc)
        return [], f"DNS server discovery failed: {exc}"
    return servers, None


async def assess_environment() -> EnvironmentCheckResult:
    """Snapshot adapters, public reachability per family and DNS health.

    The independent checks run concurrently and are joined before the report
    is built. Partial failures become ``error_messages`` entries; the
    operation itself does not fail.
    """
    logger.info("Environment check started")
    inventory, v4, v6, dns_check, (dns_servers, dns_server_error) = await asyncio.gather(
        _adapters(),
        lookup_global_ip(AddressFamily.IPV4),
        lookup_global_ip(AddressFamily.IPV6),
        resolve(settings.DNS_SANITY_DOMAIN),
        _dns_servers(),
    )
    return build_environment_result(inventory, v4, v6, dns_check, dns_servers, dns_server_error)


def build_environment_result(
    inventory: AdapterInventoryResult,
    v4: GlobalIPLookupResult,
    v6: GlobalIPLookupResult,
    dns_check: ResolveOutcome,
    dns_servers: list[DnsServerInfo],
    dns_server_error: str | None = None,
) -> EnvironmentCheckResult:
    errors: list[str] = list(inventory.errors)
    if v4.info is None:
        errors.append(f"IPv4 global IP lookup failed: {v4.error or ErrorCode.HTTP_EXCHANGE_FAILED.value}")
    if v6.info is None:
        errors.append(f"IPv6 global IP lookup failed: {v6.error or ErrorCode.HTTP_EXCHANGE_FAILED.value}")

    resolution = dns_check.resolution
    dns_ok = bool(resolution.ipv4_addresses or resolution.ipv6_addresses)
    if not dns_ok:
        errors.extend(dns_check.errors or [
            f"{ErrorCode.DNS_LOOKUP_FAILED.value}: {settings.DNS_SANITY_DOMAIN} returned no records"
        ])
    if dns_server_error:
        errors.append(dns_server_error)

    ipv4_ok = v4.info is not None
    ipv6_ok = v6.info is not None
    result = EnvironmentCheckResult(
        adapters=inventory.adapters,
        ipv4_connectivity=ipv4_ok,
        ipv6_connectivity=ipv6_ok,
        dns_resolution=dns_ok,
        internet_available=ipv4_ok or ipv6_ok,
        ipv4_global_ip=v4.info,
        ipv6_global_ip=v6.info,
        dns_servers=dns_servers,
        error_messages=errors,
    )
    logger.info(
        "Environment check done | ipv4=%s ipv6=%s dns=%s internet=%s errors=%d",
        result.ipv4_connectivity,
        result.ipv6_connectivity,
        result.dns_resolution,
        result.internet_available,
        len(errors),
    )
    return result
