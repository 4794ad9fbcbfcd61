"""
Image proxy

Fetches a remote image on behalf of the browser so canvas pixel reads are
not blocked by cross-origin rules.
"""

import logging

import httpx
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import Response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/proxy-image")
async def proxy_image(request: Request, url: str = Query(..., description="Remote image URL")):
    if not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="Only http(s) URLs can be proxied")

    timeout = request.app.state.settings.asset_timeout_s
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            resp = await client.get(url)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.warning("Proxy upstream %s returned %d", url, e.response.status_code)
        raise HTTPException(status_code=502, detail=f"Upstream returned HTTP {e.response.status_code}")
    except httpx.HTTPError as e:
        logger.warning("Proxy fetch failed for %s: %s", url, e)
        raise HTTPException(status_code=502, detail=f"Failed to fetch image: {e.__class__.__name__}")

    return Response(
        content=resp.content,
        media_type=resp.headers.get("content-type", "application/octet-stream"),
        headers={
            "Access-Control-Allow-Origin": "*",
            "Cache-Control": "public, max-age=3600",
        },
    )
