from __future__ import annotations

from pydantic import BaseModel

from image_splitter.models import SplitRequest


class SplitImageRequest(BaseModel):
    url: str = ""
    images_prefix: str = ""
    width: int = 0
    max_images: int = 0
    create_zip: bool = False

    def to_domain(self) -> SplitRequest:
        return SplitRequest(
            url=self.url,
            images_prefix=self.images_prefix,
            width=self.width,
            max_images=self.max_images,
            create_zip=self.create_zip,
        )


class HealthStatus(BaseModel):
    status: str
    version: str
