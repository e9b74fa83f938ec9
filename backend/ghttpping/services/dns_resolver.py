import asyncio
import logging
import socket
from dataclasses import dataclass, field

import dns.resolver

from ghttpping.config import settings
from ghttpping.core.errors import ErrorCode, InvalidAddressError
from ghttpping.schemas.network import Address, AddressFamily, DnsResolution
from ghttpping.services.address_classifier import classify, is_ip_literal

logger = logging.getLogger(__name__)

_RDTYPES = {AddressFamily.IPV4: "A", AddressFamily.IPV6: "AAAA"}
_SOCKET_FAMILIES = {AddressFamily.IPV4: socket.AF_INET, AddressFamily.IPV6: socket.AF_INET6}

# getaddrinfo answers for "the name exists but has no address of this family"
# and "the name does not exist" with the same codes.
_NO_NAME = frozenset(
    code for code in (socket.EAI_NONAME, getattr(socket, "EAI_NODATA", None)) if code is not None
)


@dataclass
class FamilyLookup:
    family: AddressFamily
    addresses: list[Address] = field(default_factory=list)
    error: str | None = None


@dataclass
class ResolveOutcome:
    resolution: DnsResolution
    family_errors: dict[AddressFamily, str] = field(default_factory=dict)

    @property
    def errors(self) -> list[str]:
        return list(self.family_errors.values())

    def error_for(self, family: AddressFamily) -> str | None:
        return self.family_errors.get(family)


def _failure(hostname: str, family: AddressFamily, detail: str) -> FamilyLookup:
    return FamilyLookup(
        family=family,
        error=f"{ErrorCode.DNS_LOOKUP_FAILED.value}: {hostname} {_RDTYPES[family]} ({detail})",
    )


def _describe(exc: socket.gaierror) -> str:
    if exc.errno in _NO_NAME:
        return "NXDOMAIN"
    if exc.errno == socket.EAI_AGAIN:
        return "temporary failure"
    return exc.strerror or type(exc).__name__


def _name_exists(host: str) -> bool:
    try:
        socket.getaddrinfo(host, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError):
        return False
    return True


def lookup_family(hostname: str, family: AddressFamily) -> FamilyLookup:
    """Blocking single-family lookup through the OS resolver (hosts file included).

    Zero records of the family is a successful, empty lookup. A name that does
    not exist at all, or a resolver failure, yields an empty list with a
    ``DnsLookupFailed`` message.
    """
    host = hostname.strip()

    if is_ip_literal(host):
        address = classify(host)
        return FamilyLookup(family=family, addresses=[address] if address.family is family else [])

    try:
        infos = socket.getaddrinfo(host, None, _SOCKET_FAMILIES[family], socket.SOCK_STREAM)
    except socket.gaierror as exc:
        if exc.errno in _NO_NAME and _name_exists(host):
            logger.debug("DNS %s %s -> no records", _RDTYPES[family], host)
            return FamilyLookup(family=family)
        logger.info("DNS %s lookup for %s failed: %s", _RDTYPES[family], host, exc)
        return _failure(host, family, _describe(exc))
    except UnicodeError as exc:
        logger.info("DNS lookup for %r rejected: %s", host, exc)
        return _failure(host, family, "invalid name")

    addresses: list[Address] = []
    seen: set[str] = set()
    for _family, _type, _proto, _canonname, sockaddr in infos:
        try:
            address = classify(str(sockaddr[0]))
        except InvalidAddressError:
            continue
        if address.family is not family or address.ip in seen:
            continue
        seen.add(address.ip)
        addresses.append(address)

    logger.debug("DNS %s %s -> %s", _RDTYPES[family], host, [a.ip for a in addresses])
    return FamilyLookup(family=family, addresses=addresses)


async def lookup_family_async(
    hostname: str, family: AddressFamily, timeout: float | None = None
) -> FamilyLookup:
    """:func:`lookup_family` on a worker thread; ``timeout`` bounds the wait."""
    timeout = settings.DNS_TIMEOUT if timeout is None else timeout
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(lookup_family, hostname, family),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("DNS %s lookup for %s abandoned after %.1fs", _RDTYPES[family], hostname, timeout)
        return _failure(hostname, family, "timeout")


async def resolve(hostname: str, timeout: float | None = None) -> ResolveOutcome:
    """Resolve A and AAAA concurrently; ready only once both have finished."""
    v4, v6 = await asyncio.gather(
        lookup_family_async(hostname, AddressFamily.IPV4, timeout),
        lookup_family_async(hostname, AddressFamily.IPV6, timeout),
    )
    return ResolveOutcome(
        resolution=DnsResolution(ipv4_addresses=v4.addresses, ipv6_addresses=v6.addresses),
        family_errors={lookup.family: lookup.error for lookup in (v4, v6) if lookup.error},
    )


def system_nameservers() -> list[str]:
    """Nameservers from the OS resolver configuration (resolv.conf / registry)."""
    # dnspython >= 2.4 wraps entries in Nameserver objects; older releases use plain strings.
    return [str(getattr(ns, "address", ns)) for ns in dns.resolver.Resolver().nameservers]
