from dataclasses import dataclass
from urllib.parse import urlsplit

from ghttpping.config import settings
from ghttpping.core.errors import InvalidTargetError

DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters that have no business in a hostname and would be dangerous if the
# host ever reached a shell.
_FORBIDDEN_HOST_CHARS = frozenset("$`|&;><() ")


@dataclass(frozen=True)
class Target:
    url: str
    scheme: str
    host: str
    port: int
    path: str = "/"

    @property
    def secure(self) -> bool:
        return self.scheme == "https"


def validate_hostname(host: str) -> str:
    host = (host or "").strip()
    if not host or len(host) > 255:
        raise InvalidTargetError("Hostname is empty or too long")
    if any(c in _FORBIDDEN_HOST_CHARS for c in host):
        raise InvalidTargetError("Hostname contains invalid characters")
    return host


def parse_target(url: str) -> Target:
    """Validate a user-supplied http(s) URL and split it into probe coordinates."""
    raw = (url or "").strip()
    if not raw or len(raw) > settings.MAX_URL_LENGTH:
        raise InvalidTargetError("URL is empty or too long")

    parsed = urlsplit(raw)
    scheme = parsed.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        raise InvalidTargetError("URL must start with http:// or https://")

    if not parsed.hostname:
        raise InvalidTargetError("Cannot extract a hostname from the URL")
    host = validate_hostname(parsed.hostname)

    try:
        port = parsed.port
    except ValueError as exc:
        raise InvalidTargetError(f"Invalid port in URL: {exc}") from exc
    if port is None:
        port = DEFAULT_PORTS[scheme]
    elif port == 0:
        raise InvalidTargetError("Port 0 cannot be probed")

    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"

    return Target(url=raw, scheme=scheme, host=host, port=port, path=path)


def normalize_hostname(raw: str) -> str:
    """Extract a bare hostname from a possibly-URL input."""
    raw = (raw or "").strip()
    if "://" in raw:
        host = urlsplit(raw).hostname
        if host:
            return validate_hostname(host)
    if raw.startswith("["):
        raw = raw[1:].split("]", 1)[0]
    elif raw.count(":") == 1:
        raw = raw.split(":", 1)[0]
    if "/" in raw:
        raw = raw.split("/", 1)[0]
    return validate_hostname(raw)
