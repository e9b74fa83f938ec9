import asyncio
import logging

from ghttpping.config import settings
from ghttpping.schemas.network import AddressFamily, HttpPingDualResult
from ghttpping.services.connectivity_probe import probe_async
from ghttpping.services.dns_resolver import resolve
from ghttpping.services.target import parse_target

logger = logging.getLogger(__name__)


async def ping_dual(url: str, ignore_tls_errors: bool = False, verbose: bool = False) -> HttpPingDualResult:
    """Reach ``url`` once over IPv4 and once over IPv6, independently.

    Raises InvalidTargetError for URLs that cannot be probed. Network
    failures never raise; they are recorded on the per-family results.
    """
    target = parse_target(url)
    if ignore_tls_errors:
        logger.warning("Security warning: TLS certificate verification disabled for %s", target.url)

    outcome = await resolve(target.host)
    dns_resolution = outcome.resolution
    for error in outcome.errors:
        logger.info("Resolution of %s: %s", target.host, error)

    # Fan out both families, then join; neither result short-circuits the other.
    v4, v6 = await asyncio.gather(*(
        probe_async(
            target.host,
            target.port,
            family,
            scheme=target.scheme,
            path=target.path,
            url=target.url,
            use_http=True,
            ignore_tls_errors=ignore_tls_errors,
            timeout=settings.PROBE_TIMEOUT,
            addresses=dns_resolution.for_family(family),
            lookup_error=outcome.error_for(family),
            verbose=verbose,
        )
        for family in (AddressFamily.IPV4, AddressFamily.IPV6)
    ))

    logger.info(
        "Dual ping %s | ipv4=%s ipv6=%s",
        target.url,
        v4.result.success or v4.result.error_message,
        v6.result.success or v6.result.error_message,
    )
    return HttpPingDualResult(
        url=target.url,
        dns_resolution=dns_resolution,
        ipv4=v4.result,
        ipv6=v6.result,
    )
