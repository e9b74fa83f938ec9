"""
Boundary operations of the diagnostics engine.

Each call is self-contained: nothing persists between invocations. Network
and OS failures are already folded into the returned reports by the layers
below. An unexpected internal fault is logged here and answered with a
minimal report tagged ``InternalError``, so a request is never dropped.
Invalid input (InvalidTargetError) is the caller's problem and propagates.
"""
import logging

from ghttpping.core.errors import ErrorCode, InvalidTargetError
from ghttpping.schemas.network import (
    DnsResolution,
    EnvironmentCheckResult,
    HttpPingDualResult,
    HttpPingResult,
)
from ghttpping.services.dns_resolver import resolve
from ghttpping.services.dual_ping import ping_dual
from ghttpping.services.environment import assess_environment
from ghttpping.services.target import normalize_hostname

logger = logging.getLogger(__name__)


async def environment_check() -> EnvironmentCheckResult:
    try:
        return await assess_environment()
    except Exception as exc:
        logger.exception("Environment check failed")
        return EnvironmentCheckResult(
            error_messages=[f"{ErrorCode.INTERNAL_ERROR.value}: {type(exc).__name__}: {exc}"],
        )


async def ping_http_dual(
    url: str,
    ignore_tls_errors: bool = False,
    save_verbose_log: bool = False,
) -> HttpPingDualResult:
    try:
        return await ping_dual(url, ignore_tls_errors=ignore_tls_errors, verbose=save_verbose_log)
    except InvalidTargetError:
        raise
    except Exception:
        logger.exception("Dual ping failed for url=%s", url)
        failed = HttpPingResult(url=url, success=False, error_message=ErrorCode.INTERNAL_ERROR.value)
        return HttpPingDualResult(url=url, dns_resolution=DnsResolution(), ipv4=failed, ipv6=failed)


async def resolve_dns(domain: str) -> DnsResolution:
    hostname = normalize_hostname(domain)
    try:
        outcome = await resolve(hostname)
    except Exception:
        logger.exception("DNS resolve failed for hostname=%s", hostname)
        return DnsResolution()
    for error in outcome.errors:
        logger.info("Resolve %s: %s", hostname, error)
    return outcome.resolution
