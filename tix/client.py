"""
Async HTTP client for the Tix REST API.

Used by the event authoring wizard as its catalog writer, and usable as a
general API client. Error responses are turned back into the matching
``tix.core.errors`` exception using the ``code`` field of the body.
"""

import logging
from typing import Any, Dict, List, Optional, Type

import httpx

from tix.core import errors
from tix.core.settings import get_settings

logger = logging.getLogger(__name__)

_ERROR_TYPES: Dict[str, Type[errors.TixError]] = {
    cls.code: cls
    for cls in (
        errors.ValidationError,
        errors.Unauthorized,
        errors.Forbidden,
        errors.NotFound,
        errors.EventNotFound,
        errors.TicketTypeNotFound,
        errors.BookingNotFound,
        errors.InsufficientInventory,
        errors.InvalidBookingState,
        errors.NotConfirmed,
        errors.PaymentProcessingError,
        errors.ImageUploadError,
    )
}


def error_from_response(response: httpx.Response) -> errors.TixError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    detail = body.get("detail") if isinstance(body, dict) else None
    code = body.get("code") if isinstance(body, dict) else None
    message = detail if isinstance(detail, str) else f"Request failed ({response.status_code})"
    if isinstance(detail, list) and detail:
        messages = [str(item.get("msg", item)) for item in detail if isinstance(item, dict)]
        message = "; ".join(messages) or message

    error_cls = _ERROR_TYPES.get(code or "")
    if error_cls is not None:
        return error_cls(message)
    return errors.TixError(message, status_code=response.status_code, code=code or "http_error")


class TixClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.api_prefix = get_settings().API_V1_PREFIX
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url or "http://localhost:8000", timeout=httpx.Timeout(timeout)
        )
        self.token = token

    async def __aenter__(self) -> "TixClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.api_prefix}{path}"
        try:
            response = await self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.RequestError as e:
            logger.error("Network error calling %s %s: %s", method, url, e)
            raise errors.TixError(
                f"Could not reach the Tix API: {e}", status_code=503, code="unavailable"
            ) from e

        if response.is_error:
            raise error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Identity

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data

    # Catalog writer

    async def upload_image(
        self, content: bytes, content_type: str, filename: str = "image"
    ) -> Dict[str, str]:
        try:
            return await self._request(
                "POST", "/upload-image", files={"image": (filename, content, content_type)}
            )
        except (errors.ImageUploadError, errors.ValidationError):
            raise
        except errors.TixError as e:
            raise errors.ImageUploadError(e.message) from e

    async def get_event(self, event_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/events/{event_id}")

    async def get_event_tickets(self, event_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/events/{event_id}/tickets")

    async def create_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/events", json=payload)

    async def update_event(self, event_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/events/{event_id}", json=payload)

    async def publish_event(self, event_id: str) -> Dict[str, Any]:
        return await self._request("PATCH", f"/events/{event_id}/publish")

    async def create_ticket(self, event_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/events/{event_id}/tickets", json=payload)

    async def update_ticket(self, ticket_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/tickets/{ticket_id}", json=payload)

    async def delete_ticket(self, ticket_id: str) -> None:
        await self._request("DELETE", f"/tickets/{ticket_id}")

    # Discovery and booking

    async def list_events(self, **filters: Any) -> Dict[str, Any]:
        params = {k: v for k, v in filters.items() if v is not None}
        return await self._request("GET", "/events", params=params)

    async def book(
        self, event_id: str, ticket_type_id: str, quantity: int, **attendee: Any
    ) -> Dict[str, Any]:
        payload = {"eventId": event_id, "ticketTypeId": ticket_type_id, "quantity": quantity}
        payload.update({k: v for k, v in attendee.items() if v is not None})
        return await self._request("POST", "/bookings", json=payload)
