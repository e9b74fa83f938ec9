import json
import logging
from dataclasses import dataclass

from pydantic import BaseModel, ValidationError

from ghttpping.config import settings
from ghttpping.core.errors import ErrorCode, InvalidAddressError
from ghttpping.schemas.network import AddressFamily, GlobalIPInfo
from ghttpping.services.address_classifier import classify
from ghttpping.services.connectivity_probe import probe_async
from ghttpping.services.target import parse_target

logger = logging.getLogger(__name__)


class _EchoPayload(BaseModel):
    client_host: str
    datetime_jst: str


@dataclass
class GlobalIPLookupResult:
    info: GlobalIPInfo | None = None
    error: str | None = None


def echo_url(family: AddressFamily) -> str:
    return settings.ECHO_IPV4_URL if family is AddressFamily.IPV4 else settings.ECHO_IPV6_URL


def parse_echo_body(body: bytes | None, family: AddressFamily) -> GlobalIPInfo:
    """Decode the echo endpoint's JSON. Raises ValueError on anything unusable."""
    if not body:
        raise ValueError("empty response body")
    try:
        payload = _EchoPayload.model_validate(json.loads(body.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"malformed echo response: {exc}") from exc
    try:
        address = classify(payload.client_host)
    except InvalidAddressError as exc:
        raise ValueError(str(exc)) from exc
    if address.family is not family:
        raise ValueError(f"echo reported {address.ip}, not an {family.label} address")
    return GlobalIPInfo(client_host=address, datetime_jst=payload.datetime_jst)


async def lookup_global_ip(family: AddressFamily) -> GlobalIPLookupResult:
    """Learn this host's public address over one family. Never raises."""
    target = parse_target(echo_url(family))
    outcome = await probe_async(
        target.host,
        target.port,
        family,
        scheme=target.scheme,
        path=target.path,
        url=target.url,
        use_http=True,
        ignore_tls_errors=settings.ECHO_IGNORE_TLS_ERRORS,
        timeout=settings.GLOBAL_IP_TIMEOUT,
        capture_body=True,
    )
    result = outcome.result
    if not result.success:
        return GlobalIPLookupResult(error=result.error_message)

    if result.status_code is None or not 200 <= result.status_code < 300:
        logger.info("%s echo endpoint answered HTTP %s", family.label, result.status_code)
        return GlobalIPLookupResult(error=ErrorCode.HTTP_EXCHANGE_FAILED.value)

    try:
        info = parse_echo_body(outcome.body, family)
    except ValueError as exc:
        logger.info("%s echo response rejected: %s", family.label, exc)
        return GlobalIPLookupResult(error=ErrorCode.HTTP_EXCHANGE_FAILED.value)

    logger.info("%s global address: %s", family.label, info.client_host.ip)
    return GlobalIPLookupResult(info=info)
