from fastapi import APIRouter, Request
from fastapi.responses import Response

from src.config import settings
from src.core.exceptions import AppError, ImageFetchError
from src.schemas.images import ImageFetchRequest, ImageFetchResponse
from src.services import image_fetcher

router = APIRouter(prefix="/images")


def _to_app_error(error: ImageFetchError) -> AppError:
    return AppError(status_code=error.http_status, detail=str(error), code=error.code)


@router.post("/fetch", response_model=ImageFetchResponse)
async def fetch_image(body: ImageFetchRequest) -> ImageFetchResponse:
    try:
        data = await image_fetcher.fetch_as_data_uri(body.url, body.proxy_url)
    except ImageFetchError as e:
        raise _to_app_error(e) from e
    return ImageFetchResponse(data=data)


@router.post("/fetch/buffer")
async def fetch_image_buffer(body: ImageFetchRequest) -> Response:
    try:
        content = await image_fetcher.fetch_as_bytes(body.url, body.proxy_url)
    except ImageFetchError as e:
        raise _to_app_error(e) from e
    return Response(content=content, media_type="application/octet-stream")


@router.api_route("/proxy", methods=["GET", "HEAD"])
async def proxy_image(request: Request, url: str | None = None) -> Response:
    try:
        relayed = await image_fetcher.relay_image(url, request.headers.get("user-agent"))
    except ImageFetchError as e:
        if e.http_status == 400:
            raise _to_app_error(e) from e
        raise AppError(status_code=502, detail="Image fetch failed", code=e.code) from e

    headers = {"Cache-Control": f"public, max-age={settings.relay_cache_max_age}"}
    return Response(
        content=relayed.content,
        status_code=relayed.status_code,
        media_type=relayed.content_type,
        headers=headers,
    )
