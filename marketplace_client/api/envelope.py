"""
Response envelope decoding.

The backend wraps payloads in one of three shapes:

    {"data": [...], "current_page": 1, "last_page": 3, ...}   paginated
    {"data": {...}} or {"message": "...", "data": {...}}       data
    {...} / [...]                                              bare

Services call decode_envelope() exactly once per response and work with
the payload from then on.
"""
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel

PAGINATION_KEYS = ("current_page", "last_page", "per_page", "total")


class Page(BaseModel):
    items: List[Any] = []
    current_page: int = 1
    last_page: int = 1
    per_page: Optional[int] = None
    total: Optional[int] = None

    @property
    def has_more(self) -> bool:
        return self.current_page < self.last_page


class PaginatedEnvelope(BaseModel):
    kind: Literal["paginated"] = "paginated"
    page: Page

    @property
    def payload(self) -> List[Any]:
        return self.page.items


class DataEnvelope(BaseModel):
    kind: Literal["data"] = "data"
    data: Any = None
    message: Optional[str] = None

    @property
    def payload(self) -> Any:
        return self.data


class BareEnvelope(BaseModel):
    kind: Literal["bare"] = "bare"
    body: Any = None

    @property
    def payload(self) -> Any:
        return self.body


Envelope = Union[PaginatedEnvelope, DataEnvelope, BareEnvelope]


def decode_envelope(body: Any) -> Envelope:
    if isinstance(body, dict) and "data" in body:
        data = body["data"]
        if isinstance(data, list) and "current_page" in body:
            page = Page(
                items=data,
                **{key: body[key] for key in PAGINATION_KEYS if body.get(key) is not None},
            )
            return PaginatedEnvelope(page=page)
        message = body.get("message")
        return DataEnvelope(data=data, message=message if isinstance(message, str) else None)
    return BareEnvelope(body=body)


def unwrap(body: Any) -> Any:
    return decode_envelope(body).payload


def unwrap_list(body: Any) -> List[Any]:
    payload = unwrap(body)
    if isinstance(payload, list):
        return payload
    return []


def unwrap_page(body: Any) -> Page:
    """Return pagination metadata, treating non-paginated lists as a single page."""
    envelope = decode_envelope(body)
    if isinstance(envelope, PaginatedEnvelope):
        return envelope.page
    items = envelope.payload if isinstance(envelope.payload, list) else []
    return Page(items=items, total=len(items))
