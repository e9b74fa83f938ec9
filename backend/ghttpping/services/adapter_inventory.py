import logging
import socket
from dataclasses import dataclass, field

import psutil

from ghttpping.core.errors import ErrorCode, InvalidAddressError
from ghttpping.schemas.network import Address, AddressFamily, AddressScope, NetworkAdapter
from ghttpping.services.address_classifier import classify

logger = logging.getLogger(__name__)

_INET_FAMILIES = (socket.AF_INET, socket.AF_INET6)


@dataclass
class AdapterInventoryResult:
    adapters: list[NetworkAdapter] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _is_loopback(address: Address) -> bool:
    return address.ip == "::1" or address.ip.startswith("127.")


def build_adapter(name: str, addresses: list[Address]) -> NetworkAdapter:
    """Derive the per-family/scope flags for one interface."""
    v4 = [a for a in addresses if a.family is AddressFamily.IPV4]
    v6 = [a for a in addresses if a.family is AddressFamily.IPV6]
    return NetworkAdapter(
        name=name,
        ip_addresses=addresses,
        has_ipv4=bool(v4),
        has_ipv6=bool(v6),
        has_ipv4_global=any(a.scope is AddressScope.GLOBAL for a in v4),
        has_ipv6_global=any(a.scope is AddressScope.GLOBAL for a in v6),
    )


def list_adapters() -> AdapterInventoryResult:
    """Snapshot interfaces that are up, with their classified non-loopback addresses.

    Blocking (reads OS state). Never raises: an OS failure yields an empty
    adapter list plus an ``AdapterEnumerationFailed`` entry.
    """
    try:
        if_addrs = psutil.net_if_addrs()
        if_stats = psutil.net_if_stats()
    except (OSError, RuntimeError, psutil.Error) as exc:
        logger.warning("Adapter enumeration failed: %s", exc)
        return AdapterInventoryResult(
            errors=[f"{ErrorCode.ADAPTER_ENUMERATION_FAILED.value}: {exc}"],
        )

    adapters: list[NetworkAdapter] = []
    for name, snics in if_addrs.items():
        stats = if_stats.get(name)
        if stats is not None and not stats.isup:
            continue

        addresses: list[Address] = []
        seen: set[str] = set()
        for snic in snics:
            if snic.family not in _INET_FAMILIES or not snic.address:
                continue
            try:
                address = classify(snic.address)
            except InvalidAddressError:
                logger.debug("Skipping unparsable address %r on %s", snic.address, name)
                continue
            if _is_loopback(address) or address.ip in seen:
                continue
            seen.add(address.ip)
            addresses.append(address)

        if addresses:
            adapters.append(build_adapter(name, addresses))

    logger.debug("Enumerated %d active adapters", len(adapters))
    return AdapterInventoryResult(adapters=adapters)
