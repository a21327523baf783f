import asyncio
import base64
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx
import structlog

from src.config import settings
from src.core.exceptions import (
    BodyReadError,
    ClientBuildError,
    HttpStatusError,
    ImageFetchError,
    InvalidProxyError,
    InvalidRelayUrlError,
    NetworkError,
)

logger = structlog.get_logger()

DATA_URI_PREFIX = "data:image/jpeg;base64,"
MAX_REDIRECTS = 10


@dataclass(frozen=True)
class RelayedImage:
    status_code: int
    content_type: str | None
    content: bytes


def _normalize_proxy(proxy_url: str | None) -> str | None:
    if not proxy_url:
        return None
    return proxy_url


def _build_proxy(proxy_url: str) -> httpx.Proxy:
    try:
        proxy = httpx.Proxy(proxy_url)
    except (ValueError, TypeError, httpx.InvalidURL) as e:
        raise InvalidProxyError(e) from e
    if not proxy.url.host:
        raise InvalidProxyError(f"Proxy URL has no host: {proxy_url!r}")
    return proxy


def build_client(proxy_url: str | None = None) -> httpx.AsyncClient:
    """Create the transient client used for a single fetch.

    A non-empty ``proxy_url`` routes both http and https traffic through one
    proxy. The client is not shared between calls.
    """
    proxy_url = _normalize_proxy(proxy_url)
    proxy = _build_proxy(proxy_url) if proxy_url else None
    try:
        return httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            verify=settings.verify_tls,
            limits=httpx.Limits(
                max_keepalive_connections=settings.pool_max_idle,
                keepalive_expiry=settings.pool_idle_timeout,
            ),
            timeout=httpx.Timeout(settings.fetch_timeout),
            proxy=proxy,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
        )
    except Exception as e:
        raise ClientBuildError(e) from e


async def _read_image(client: httpx.AsyncClient, url: str) -> bytes:
    # The whole exchange, headers and body, shares one deadline.
    stage_error: type[ImageFetchError] = NetworkError
    try:
        async with asyncio.timeout(settings.fetch_timeout):
            try:
                request = client.build_request("GET", url)
                logger.debug("image_fetch_sending", url=url)
                response = await client.send(request, stream=True)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise NetworkError(e) from e

            try:
                logger.info("image_fetch_response", url=url, status=response.status_code)
                if not response.is_success:
                    raise HttpStatusError(response.status_code, response.reason_phrase)
                stage_error = BodyReadError
                try:
                    return await response.aread()
                except httpx.HTTPError as e:
                    raise BodyReadError(e) from e
            finally:
                await response.aclose()
    except TimeoutError as e:
        raise stage_error(f"timed out after {settings.fetch_timeout}s") from e


async def fetch_as_bytes(url: str, proxy_url: str | None = None) -> bytes:
    proxy_url = _normalize_proxy(proxy_url)
    logger.info("image_fetch_started", url=url)
    if proxy_url:
        logger.info("image_fetch_proxy", proxy=proxy_url)
    else:
        logger.info("image_fetch_direct")

    try:
        client = build_client(proxy_url)
        async with client:
            content = await _read_image(client, url)
    except ImageFetchError as e:
        logger.error("image_fetch_failed", url=url, kind=e.code, error=str(e))
        raise

    logger.info("image_fetch_completed", url=url, bytes=len(content))
    return content


async def fetch_as_data_uri(url: str, proxy_url: str | None = None) -> str:
    content = await fetch_as_bytes(url, proxy_url)
    encoded = base64.b64encode(content).decode("ascii")
    logger.info("image_fetch_encoded", url=url, chars=len(encoded))
    return DATA_URI_PREFIX + encoded


def _build_relay_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(settings.fetch_timeout), follow_redirects=True)


def _validate_relay_url(url: str | None) -> str:
    if not url:
        raise InvalidRelayUrlError("Missing url")
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidRelayUrlError("Invalid url") from e
    if not parsed.scheme or not parsed.netloc:
        raise InvalidRelayUrlError("Invalid url")
    if parsed.scheme.lower() != "https":
        raise InvalidRelayUrlError("Only https URLs are allowed")
    return url


async def relay_image(url: str | None, user_agent: str | None = None) -> RelayedImage:
    """Fetch ``url`` on behalf of a browser, passing its status and content type through."""
    target = _validate_relay_url(url)
    headers = {"User-Agent": user_agent or "Mozilla/5.0"}
    try:
        async with asyncio.timeout(settings.fetch_timeout), _build_relay_client() as client:
            response = await client.get(target, headers=headers)
    except TimeoutError as e:
        logger.error("image_relay_failed", url=target, error="timeout")
        raise NetworkError(f"timed out after {settings.fetch_timeout}s") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("image_relay_failed", url=target, error=str(e))
        raise NetworkError(e) from e

    logger.info("image_relayed", url=target, status=response.status_code, bytes=len(response.content))
    return RelayedImage(
        status_code=response.status_code,
        content_type=response.headers.get("content-type"),
        content=response.content,
    )
