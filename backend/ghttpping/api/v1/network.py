import logging

from fastapi import APIRouter, HTTPException

from ghttpping.core.errors import InvalidTargetError
from ghttpping.schemas.network import (
    DnsResolution,
    DnsResolveRequest,
    EnvironmentCheckResult,
    ExportSummary,
    ExportSummaryRequest,
    HttpPingDualResult,
    PingDualRequest,
)
from ghttpping.services import engine
from ghttpping.services.summary import compose_summary

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/environment-check",
    response_model=EnvironmentCheckResult,
    response_model_exclude_none=True,
)
async def environment_check():
    logger.info("Environment check requested")
    return await engine.environment_check()


@router.post(
    "/ping-http-dual",
    response_model=HttpPingDualResult,
    response_model_exclude_none=True,
)
async def ping_http_dual(payload: PingDualRequest):
    logger.info(
        "Dual ping | url=%s ignore_tls=%s verbose=%s",
        payload.url,
        payload.ignore_tls_errors,
        payload.save_verbose_log,
    )
    try:
        return await engine.ping_http_dual(
            payload.url,
            ignore_tls_errors=payload.ignore_tls_errors,
            save_verbose_log=payload.save_verbose_log,
        )
    except InvalidTargetError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post(
    "/resolve-dns",
    response_model=DnsResolution,
    response_model_exclude_none=True,
)
async def resolve_dns(payload: DnsResolveRequest):
    logger.info("DNS resolve | domain=%s", payload.domain)
    try:
        return await engine.resolve_dns(payload.domain)
    except InvalidTargetError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.post("/export-summary", response_model=ExportSummary)
def export_summary(payload: ExportSummaryRequest):
    return compose_summary(payload.environment, payload.ping)
