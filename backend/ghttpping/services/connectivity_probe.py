"""
Family-forced connectivity probe.

One probe = address selection -> TCP connect -> optional TLS handshake ->
optional HTTP/1.1 GET, all under a single deadline. The transport is
httpcore's synchronous network backend, driven step by step so each failure
can be attributed to the stage that produced it. The socket is bound to the
family's wildcard source address, so the OS cannot fall back to the other stack.
"""
import asyncio
import logging
import ssl
import time
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote

import certifi
import httpcore
from cryptography import x509

from ghttpping.config import settings
from ghttpping.core.errors import ErrorCode
from ghttpping.schemas.network import Address, AddressFamily, HttpPingResult
from ghttpping.services.dns_resolver import lookup_family, lookup_family_async
from ghttpping.services.target import DEFAULT_PORTS

logger = logging.getLogger(__name__)

_BIND_ANY = {AddressFamily.IPV4: "0.0.0.0", AddressFamily.IPV6: "::"}
_PATH_SAFE = "/:@!$&'()*+,;=-._~?%"

_backend = httpcore.SyncBackend()


@dataclass
class ProbeOutcome:
    result: HttpPingResult
    body: bytes | None = None


class _DeadlineExceeded(Exception):
    pass


class _Deadline:
    def __init__(self, seconds: float):
        self._expires = time.monotonic() + seconds

    def remaining(self) -> float:
        left = self._expires - time.monotonic()
        if left <= 0:
            raise _DeadlineExceeded()
        return left


class _Trace:
    """Step log for one probe; rendered into ``verbose_log`` when requested."""

    def __init__(self, enabled: bool, label: str):
        self.enabled = enabled
        self.label = label
        self.lines: list[str] = []
        self._start = time.perf_counter()

    def __call__(self, message: str, *args) -> None:
        logger.debug("[%s] " + message, self.label, *args)
        if self.enabled:
            offset = (time.perf_counter() - self._start) * 1000
            self.lines.append("[%8.1f ms] %s" % (offset, message % args if args else message))

    def render(self) -> str | None:
        return "\n".join(self.lines) if self.enabled else None


class _DeadlineStream(httpcore.NetworkStream):
    """Caps every read and write at the time left on the probe's deadline."""

    def __init__(self, stream: httpcore.NetworkStream, deadline: _Deadline):
        self._stream = stream
        self._deadline = deadline

    def _cap(self, timeout: float | None) -> float:
        remaining = self._deadline.remaining()
        return remaining if timeout is None else min(timeout, remaining)

    def read(self, max_bytes: int, timeout: float | None = None) -> bytes:
        return self._stream.read(max_bytes, timeout=self._cap(timeout))

    def write(self, buffer: bytes, timeout: float | None = None) -> None:
        self._stream.write(buffer, timeout=self._cap(timeout))

    def close(self) -> None:
        self._stream.close()

    def get_extra_info(self, info: str):
        return self._stream.get_extra_info(info)


def compose_url(scheme: str, host: str, port: int, path: str = "/") -> str:
    netloc = f"[{host}]" if ":" in host else host
    if port != DEFAULT_PORTS.get(scheme):
        netloc = f"{netloc}:{port}"
    return f"{scheme}://{netloc}{path}"


def _ascii_host(host: str) -> bytes:
    try:
        return host.encode("ascii")
    except UnicodeEncodeError:
        return host.encode("idna")


def _ssl_context(ignore_tls_errors: bool) -> ssl.SSLContext:
    context = ssl.create_default_context(cafile=certifi.where())
    if ignore_tls_errors:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    context.set_alpn_protocols(["http/1.1"])
    return context


def _certificate_expiry(stream: httpcore.NetworkStream) -> datetime | None:
    sock = stream.get_extra_info("socket")
    if not isinstance(sock, ssl.SSLSocket):
        return None
    # The DER form is available even when verification was disabled.
    der = sock.getpeercert(binary_form=True)
    if not der:
        return None
    try:
        return x509.load_der_x509_certificate(der).not_valid_after_utc
    except ValueError as exc:
        logger.warning("Could not parse peer certificate: %s", exc)
        return None


def _tls_description(stream: httpcore.NetworkStream) -> str:
    sock = stream.get_extra_info("socket")
    if not isinstance(sock, ssl.SSLSocket):
        return "unknown"
    cipher = sock.cipher()
    return f"{sock.version()}, {cipher[0] if cipher else 'unknown cipher'}"


def _http_exchange(
    stream: httpcore.NetworkStream,
    scheme: str,
    host: str,
    port: int,
    path: str,
    deadline: _Deadline,
    capture_body: bool,
) -> tuple[int, bytes | None]:
    url = httpcore.URL(
        scheme=scheme.encode("ascii"),
        host=_ascii_host(host),
        port=port,
        target=quote(path, safe=_PATH_SAFE).encode("ascii"),
    )
    host_header = f"[{host}]" if ":" in host else host
    if port != DEFAULT_PORTS.get(scheme):
        host_header = f"{host_header}:{port}"

    remaining = deadline.remaining()
    request = httpcore.Request(
        method=b"GET",
        url=url,
        headers=[
            (b"Host", _ascii_host(host_header)),
            (b"User-Agent", settings.USER_AGENT.encode("ascii")),
            (b"Accept", b"*/*"),
            (b"Connection", b"close"),
        ],
        extensions={"timeout": {"read": remaining, "write": remaining}},
    )
    connection = httpcore.HTTP11Connection(origin=url.origin, stream=_DeadlineStream(stream, deadline))
    response = connection.handle_request(request)
    try:
        body = None
        if capture_body:
            chunks: list[bytes] = []
            size = 0
            for chunk in response.iter_stream():
                chunks.append(chunk)
                size += len(chunk)
                if size >= settings.MAX_BODY_BYTES:
                    break
                deadline.remaining()
            body = b"".join(chunks)[: settings.MAX_BODY_BYTES]
        return response.status, body
    finally:
        response.close()


def _classify_connect_error(exc: httpcore.ConnectError, stage: str) -> ErrorCode:
    cause = exc.__cause__ or exc.__context__
    if isinstance(cause, TimeoutError):
        return ErrorCode.CONNECTION_TIMEOUT
    if stage == "tls":
        if isinstance(cause, ssl.SSLCertVerificationError):
            return ErrorCode.TLS_VALIDATION_FAILED
        return ErrorCode.TLS_HANDSHAKE_FAILED
    return ErrorCode.CONNECTION_REFUSED


def _elapsed_ms(started: float | None) -> int | None:
    if started is None:
        return None
    return max(0, int((time.perf_counter() - started) * 1000))


def probe(
    host: str,
    port: int,
    family: AddressFamily,
    *,
    scheme: str = "https",
    path: str = "/",
    use_http: bool = True,
    ignore_tls_errors: bool = False,
    timeout: float | None = None,
    addresses: list[Address] | None = None,
    lookup_error: str | None = None,
    url: str | None = None,
    capture_body: bool = False,
    verbose: bool = False,
) -> ProbeOutcome:
    """Probe ``host:port`` strictly over ``family``. Blocking; never raises for network failures.

    ``addresses`` lets a caller reuse an earlier resolution; entries of the
    other family are ignored. ``lookup_error`` is that resolution's failure
    for this family, if any: with no usable address it turns the result into
    ``DnsLookupFailed`` rather than ``NoAddressForFamily``. Any completed HTTP
    exchange counts as success, whatever its status code.
    """
    timeout = settings.PROBE_TIMEOUT if timeout is None else timeout
    deadline = _Deadline(timeout)
    trace = _Trace(verbose, family.label)
    url = url or compose_url(scheme, host, port, path)

    def outcome(
        error: ErrorCode | None = None,
        address: Address | None = None,
        **fields,
    ) -> ProbeOutcome:
        body = fields.pop("body", None)
        result = HttpPingResult(
            url=url,
            ip_address=address,
            success=error is None,
            error_message=error.value if error else None,
            verbose_log=trace.render(),
            **fields,
        )
        return ProbeOutcome(result=result, body=body)

    # ── 1. Address selection (family-scoped DNS precedes any socket) ──
    if addresses is None:
        lookup = lookup_family(host, family)
        addresses = lookup.addresses
        lookup_error = lookup_error or lookup.error
    if lookup_error:
        trace("%s", lookup_error)
    candidates = [a for a in addresses if a.family is family]
    if not candidates:
        if lookup_error:
            logger.info("%s probe of %s: %s", family.label, url, lookup_error)
            return outcome(ErrorCode.DNS_LOOKUP_FAILED)
        trace("No %s address for %s", family.label, host)
        return outcome(ErrorCode.NO_ADDRESS_FOR_FAMILY)
    address = candidates[0]

    stage = "connect"
    stream: httpcore.NetworkStream | None = None
    started: float | None = None
    expiry: datetime | None = None
    try:
        # ── 2. TCP connect ──
        trace("Connecting to %s port %d", address.ip, port)
        started = time.perf_counter()
        stream = _backend.connect_tcp(
            address.ip,
            port,
            timeout=deadline.remaining(),
            local_address=_BIND_ANY[family],
        )
        trace("TCP connection established")

        # ── 3. TLS ──
        if scheme == "https":
            stage = "tls"
            if ignore_tls_errors:
                trace("Certificate verification disabled")
            stream = stream.start_tls(
                _ssl_context(ignore_tls_errors),
                server_hostname=host,
                timeout=deadline.remaining(),
            )
            expiry = _certificate_expiry(stream)
            trace("TLS handshake complete (%s); certificate expires %s", _tls_description(stream), expiry)

        # ── 4. HTTP ──
        status_code = None
        body = None
        if use_http:
            stage = "http"
            status_code, body = _http_exchange(stream, scheme, host, port, path, deadline, capture_body)
            trace("HTTP/1.1 status %d", status_code)

        return outcome(
            address=address,
            status_code=status_code,
            response_time_ms=_elapsed_ms(started),
            tls_certificate_expiry=expiry,
            body=body,
        )
    except (_DeadlineExceeded, httpcore.TimeoutException) as exc:
        trace("Deadline of %.1fs exceeded during %s (%s)", timeout, stage, str(exc) or type(exc).__name__)
        code = ErrorCode.CONNECTION_TIMEOUT
    except httpcore.ConnectError as exc:
        code = _classify_connect_error(exc, stage)
        trace("%s failed: %s", stage, exc)
    except (httpcore.NetworkError, httpcore.ProtocolError) as exc:
        code = ErrorCode.HTTP_EXCHANGE_FAILED if stage == "http" else ErrorCode.TLS_HANDSHAKE_FAILED
        trace("%s failed: %s", stage, exc)
    finally:
        if stream is not None:
            stream.close()

    logger.info("%s probe of %s via %s failed: %s", family.label, url, address.ip, code.value)
    return outcome(
        code,
        address=address,
        response_time_ms=_elapsed_ms(started),
        tls_certificate_expiry=expiry,
    )


async def probe_async(host: str, port: int, family: AddressFamily, **kwargs) -> ProbeOutcome:
    """Resolve, then run :func:`probe` on a worker thread, bounded by its deadline plus grace.

    Resolution happens first so that a probe abandoned at the outer bound
    still reports the address it was dialing. The worker itself stops at its
    own deadline and closes its socket.
    """
    timeout = kwargs.get("timeout")
    if timeout is None:
        timeout = settings.PROBE_TIMEOUT
    started = time.monotonic()

    if kwargs.get("addresses") is None:
        lookup = await lookup_family_async(host, family, min(timeout, settings.DNS_TIMEOUT))
        kwargs["addresses"] = lookup.addresses
        kwargs["lookup_error"] = kwargs.get("lookup_error") or lookup.error
    kwargs["timeout"] = max(timeout - (time.monotonic() - started), 0.01)

    try:
        return await asyncio.wait_for(
            asyncio.to_thread(probe, host, port, family, **kwargs),
            timeout=kwargs["timeout"] + settings.PROBE_GRACE_SECONDS,
        )
    except asyncio.TimeoutError:
        url = kwargs.get("url") or compose_url(
            kwargs.get("scheme", "https"), host, port, kwargs.get("path", "/")
        )
        candidates = [a for a in kwargs["addresses"] if a.family is family]
        logger.warning("%s probe of %s abandoned after %.1fs", family.label, url, timeout)
        return ProbeOutcome(
            result=HttpPingResult(
                url=url,
                ip_address=candidates[0] if candidates else None,
                success=False,
                error_message=ErrorCode.CONNECTION_TIMEOUT.value,
            )
        )
