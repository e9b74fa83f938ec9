import ipaddress

from ghttpping.core.errors import InvalidAddressError
from ghttpping.schemas.network import Address, AddressFamily, AddressScope

_PRIVATE_V4 = tuple(
    ipaddress.IPv4Network(n)
    for n in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "127.0.0.0/8",  # loopback
        "169.254.0.0/16",  # link-local
        "0.0.0.0/8",
        "224.0.0.0/4",  # multicast
        "255.255.255.255/32",
    )
)

_PRIVATE_V6 = tuple(
    ipaddress.IPv6Network(n)
    for n in (
        "fc00::/7",  # unique-local
        "fe80::/10",  # link-local
        "::1/128",
        "::/128",
        "ff00::/8",  # multicast
    )
)


def _parse(literal: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    if not isinstance(literal, str):
        raise InvalidAddressError(f"Not an IP literal: {literal!r}")
    text = literal.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    # Zone index ("fe80::1%eth0") carries no scope information of its own.
    text = text.split("%", 1)[0]
    try:
        return ipaddress.ip_address(text)
    except ValueError as exc:
        raise InvalidAddressError(f"Not an IP literal: {literal!r}") from exc


def classify(literal: str) -> Address:
    """Tag an IP literal with its family and private/global scope."""
    ip = _parse(literal)
    if ip.version == 4:
        private = any(ip in net for net in _PRIVATE_V4)
        family = AddressFamily.IPV4
    else:
        private = any(ip in net for net in _PRIVATE_V6)
        family = AddressFamily.IPV6
    return Address(
        ip=str(ip),
        family=family,
        scope=AddressScope.PRIVATE if private else AddressScope.GLOBAL,
    )


def is_ip_literal(text: str) -> bool:
    try:
        _parse(text)
    except InvalidAddressError:
        return False
    return True
