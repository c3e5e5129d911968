from .base import CamelModel


class HealthResponse(CamelModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: str


class WebhookAckResponse(CamelModel):
    received: bool = True
    status: str | None = None
