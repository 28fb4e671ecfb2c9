"""Structured Huawei Cloud API errors."""

from __future__ import annotations

import json
from typing import Any

from cce_operator.exceptions import CloudAPIError
from cce_operator.infra.http import HttpError


class HuaweiError(CloudAPIError):
    """Error response from a Huawei Cloud service.

    Built at the client boundary from the HTTP status, the ``X-Request-Id``
    header and whichever error body shape the service returned.
    """

    def __init__(
        self,
        status_code: int,
        error_code: str = "",
        error_message: str = "",
        request_id: str = "",
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        self.error_message = error_message
        self.request_id = request_id
        super().__init__(str(self))

    @property
    def is_not_found(self) -> bool:
        """A 404 from the service itself, not from a proxy or gateway page."""
        return self.status_code == 404 and bool(self.error_code)

    def without_request_id(self) -> HuaweiError:
        return HuaweiError(self.status_code, self.error_code, self.error_message)

    def to_dict(self) -> dict[str, Any]:
        fields = {
            "status_code": self.status_code,
            "request_id": self.request_id,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
        return {k: v for k, v in fields.items() if v}

    def __str__(self) -> str:
        return json.dumps(self.to_dict())

    def __repr__(self) -> str:
        return f"HuaweiError({self.to_dict()!r})"

    @classmethod
    def from_http(cls, e: HttpError) -> HuaweiError:
        code, message = _parse_body(e.body)
        return cls(e.status, code, message or e.body, e.request_id)


def _parse_body(body: str) -> tuple[str, str]:
    try:
        data = json.loads(body)
    except ValueError:
        return "", ""
    if not isinstance(data, dict):
        return "", ""

    match data:
        case {"error_code": code, "error_msg": msg}:
            return str(code), str(msg)
        case {"errorCode": code, "errorMessage": msg}:
            return str(code), str(msg)
        case {"error": {"code": code, "message": msg}}:
            return str(code), str(msg)
        case {"code": code, "message": msg}:
            return str(code), str(msg)
        case _:
            return "", ""


def is_not_found(e: BaseException) -> bool:
    """Only structured 404 responses count as "already gone"."""
    return isinstance(e, HuaweiError) and e.is_not_found
