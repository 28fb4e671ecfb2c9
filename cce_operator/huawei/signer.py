"""AK/SK request signing (SDK-HMAC-SHA256) for Huawei Cloud APIs."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from urllib.parse import parse_qsl, urlsplit

from huaweicloudsdkcore.auth.credentials import BasicCredentials
from huaweicloudsdkcore.sdk_request import SdkRequest
from huaweicloudsdkcore.signer.signer import Signer

DATE_FORMAT = "%Y%m%dT%H%M%SZ"


class AkSkAuth:
    """Signs requests with an access key / secret key pair.

    Implements the ``Auth`` protocol of :class:`~cce_operator.infra.http.HttpClient`
    on top of the Huawei Cloud SDK signer. ``clock`` pins ``X-Sdk-Date``.
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        project_id: str = "",
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._project_id = project_id
        self._signer = Signer(BasicCredentials(access_key, secret_key, project_id or None))
        self._clock = clock or (lambda: datetime.now(UTC))

    def headers(self, method: str, url: str, body: bytes) -> dict[str, str]:
        parts = urlsplit(url)
        headers = {
            "Content-Type": "application/json",
            "Host": parts.netloc,
            "X-Sdk-Date": self._clock().strftime(DATE_FORMAT),
        }
        if self._project_id:
            headers["X-Project-Id"] = self._project_id

        request = SdkRequest(
            method=method.upper(),
            schema=parts.scheme,
            host=parts.netloc,
            resource_path=parts.path or "/",
            query_params=parse_qsl(parts.query, keep_blank_values=True),
            header_params=headers,
            body=body,
        )
        signed = self._signer.sign(request)

        # aiohttp sets Host from the URL
        return {k: v for k, v in signed.header_params.items() if k.lower() != "host"}
