from pydantic import BaseModel


class ImageFetchRequest(BaseModel):
    url: str
    proxy_url: str | None = None


class ImageFetchResponse(BaseModel):
    data: str
