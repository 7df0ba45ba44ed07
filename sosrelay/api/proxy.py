"""Catch-all route: every other request goes through the Request Router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from sosrelay.core.deps import get_pipeline
from sosrelay.core.errors import PersistenceError, TransientNetworkError
from sosrelay.schemas.relay import OutboundRequest, forwardable_headers
from sosrelay.services.pipeline import Pipeline

router = APIRouter(tags=["proxy"])

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def relay(
    path: str,
    request: Request,
    pipeline: Pipeline = Depends(get_pipeline),
):
    target = pipeline.settings.remote_base_url.rstrip("/") + "/" + path
    if request.url.query:
        target = f"{target}?{request.url.query}"

    outbound = OutboundRequest(
        method=request.method,
        url=target,
        headers=forwardable_headers(request.headers),
        body=await request.body(),
    )
    try:
        result = await pipeline.router.handle(outbound)
    except TransientNetworkError as exc:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    headers = dict(result.headers)
    headers["x-sosrelay-cache"] = "hit" if result.from_cache else "miss"
    return Response(content=result.body, status_code=result.status_code, headers=headers)
