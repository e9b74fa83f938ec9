"""
Plain-text export of diagnostic results, for saving or mailing.

The caller hands in the results it is holding; nothing here remembers
previous runs.
"""
from urllib.parse import quote

from ghttpping.schemas.network import (
    EnvironmentCheckResult,
    ExportSummary,
    HttpPingDualResult,
    HttpPingResult,
    NetworkAdapter,
)

SUBJECT = "ghttpping connectivity report"


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def _adapter_lines(adapter: NetworkAdapter) -> list[str]:
    v4 = _yes_no(adapter.has_ipv4) + (" (global)" if adapter.has_ipv4_global else "")
    v6 = _yes_no(adapter.has_ipv6) + (" (global)" if adapter.has_ipv6_global else "")
    lines = [f"  - {adapter.name}", f"    IPv4: {v4}", f"    IPv6: {v6}"]
    if adapter.ip_addresses:
        lines.append("    Addresses: " + ", ".join(a.ip for a in adapter.ip_addresses))
    return lines


def _environment_lines(env: EnvironmentCheckResult) -> list[str]:
    lines = [
        "## Environment check",
        f"Internet available: {_yes_no(env.internet_available)}",
        f"IPv4 connectivity: {_yes_no(env.ipv4_connectivity)}",
        f"IPv6 connectivity: {_yes_no(env.ipv6_connectivity)}",
        f"DNS resolution: {_yes_no(env.dns_resolution)}",
    ]
    for label, info in (("IPv4", env.ipv4_global_ip), ("IPv6", env.ipv6_global_ip)):
        if info is not None:
            lines.append(f"{label} global address: {info.client_host.ip} (at {info.datetime_jst})")
    if env.dns_servers:
        lines.append("DNS servers:")
        for server in env.dns_servers:
            servers = server.ipv4_dns_servers + server.ipv6_dns_servers
            lines.append(f"  - {server.interface_alias}: {', '.join(servers)}")
    if env.adapters:
        lines.append("Network adapters:")
        for adapter in env.adapters:
            lines.extend(_adapter_lines(adapter))
    if env.error_messages:
        lines.append("Errors / warnings:")
        lines.extend(f"  - {msg}" for msg in env.error_messages)
    return lines


def _ping_lines(label: str, result: HttpPingResult) -> list[str]:
    lines = [f"[{label}] {'success' if result.success else 'failed'}"]
    if result.ip_address is not None:
        lines.append(f"  Address: {result.ip_address.ip}")
    if result.status_code is not None:
        lines.append(f"  Status code: {result.status_code}")
    if result.response_time_ms is not None:
        lines.append(f"  Response time: {result.response_time_ms} ms")
    if result.tls_certificate_expiry is not None:
        lines.append(f"  TLS certificate expires: {result.tls_certificate_expiry.isoformat()}")
    if result.error_message:
        lines.append(f"  Error: {result.error_message}")
    return lines


def _dual_ping_lines(ping: HttpPingDualResult) -> list[str]:
    dns = ping.dns_resolution
    lines = [
        "## Connectivity check",
        f"URL: {ping.url}",
        "A records: " + (", ".join(a.ip for a in dns.ipv4_addresses) or "(none)"),
        "AAAA records: " + (", ".join(a.ip for a in dns.ipv6_addresses) or "(none)"),
    ]
    lines.extend(_ping_lines("IPv4", ping.ipv4))
    lines.extend(_ping_lines("IPv6", ping.ipv6))
    return lines


def compose_summary(
    environment: EnvironmentCheckResult | None = None,
    ping: HttpPingDualResult | None = None,
) -> ExportSummary:
    lines = [f"=== {SUBJECT} ===", ""]
    if environment is not None:
        lines.extend(_environment_lines(environment))
        lines.append("")
    if ping is not None:
        lines.extend(_dual_ping_lines(ping))
        lines.append("")
    if environment is None and ping is None:
        lines.append("No results to report.")

    body = "\n".join(lines).rstrip() + "\n"
    mailto = f"mailto:?subject={quote(SUBJECT)}&body={quote(body)}"
    return ExportSummary(subject=SUBJECT, body=body, mailto=mailto)
