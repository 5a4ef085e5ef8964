from .base import CamelModel


class UploadedImage(CamelModel):
    url: str
    public_id: str


class DeletedImage(CamelModel):
    message: str
    public_id: str
