import structlog
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


class AppError(Exception):
    def __init__(self, status_code: int, detail: str, code: str | None = None) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.code = code


class ImageFetchError(Exception):
    """Base class for failures while fetching an image.

    ``str(error)`` is the human readable message shown to callers; ``code``
    identifies the failure kind and ``http_status`` is what the API answers with.
    """

    code = "image_fetch_error"
    http_status = 502
    prefix: str | None = "Image fetch failed"

    def __init__(self, reason: object) -> None:
        self.reason = str(reason)
        super().__init__(f"{self.prefix}: {self.reason}" if self.prefix else self.reason)


class InvalidProxyError(ImageFetchError):
    code = "invalid_proxy"
    http_status = 400
    prefix = "Failed to create proxy"


class ClientBuildError(ImageFetchError):
    code = "client_build_failed"
    http_status = 500
    prefix = "Failed to build client"


class NetworkError(ImageFetchError):
    code = "network_error"
    prefix = "Request failed"


class HttpStatusError(ImageFetchError):
    code = "http_status_error"
    prefix = "Failed to fetch image"

    def __init__(self, status_code: int, reason_phrase: str = "") -> None:
        self.status_code = status_code
        super().__init__(f"{status_code} {reason_phrase}".strip())


class BodyReadError(ImageFetchError):
    code = "body_read_error"
    prefix = "Failed to read bytes"


class InvalidRelayUrlError(ImageFetchError):
    code = "invalid_url"
    http_status = 400
    prefix = None


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    content: dict[str, str] = {"detail": exc.detail}
    if exc.code:
        content["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=content)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        item = {key: value for key, value in error.items() if key != "url"}
        item.pop("ctx", None)
        errors.append(item)
    logger.warning("request_validation_failed", path=request.url.path, errors=len(errors))
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})
