from __future__ import annotations

import time
from typing import Any

import requests
from google.auth.transport.requests import Request
from google.oauth2 import id_token


class UpstreamError(RuntimeError):
    """Raised when a Cloud Run backend cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: int = 500, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.payload = payload


class CloudRunClient:
    """POST JSON to a private Cloud Run service with a Google-signed ID token."""

    TOKEN_TTL_SEC = 3000

    def __init__(self, service_url: str, timeout_sec: int = 300) -> None:
        self.service_url = str(service_url or "").strip()
        self.timeout_sec = max(5, int(timeout_sec))
        self._token: str = ""
        self._token_start_unix: float = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.service_url)

    def _fetch_token(self) -> str:
        # The audience of the ID token is the receiving service URL.
        return str(id_token.fetch_id_token(Request(), self.service_url) or "")

    def _get_token(self) -> str:
        try:
            token = self._fetch_token()
        except Exception as exc:  # noqa: BLE001
            raise UpstreamError(
                f"Failed to obtain identity token for {self.service_url}: {exc}",
                status_code=502,
            ) from exc
        if not token:
            raise UpstreamError(
                f"Empty identity token returned for {self.service_url}.",
                status_code=502,
            )
        self._token = token
        self._token_start_unix = time.time()
        return token

    def _ensure_token(self) -> str:
        now = time.time()
        if self._token and (now - self._token_start_unix) < self.TOKEN_TTL_SEC:
            return self._token
        return self._get_token()

    def _send(self, payload: dict[str, Any], token: str) -> requests.Response:
        try:
            return requests.post(
                self.service_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout_sec,
            )
        except requests.RequestException as exc:
            raise UpstreamError(
                f"Request to {self.service_url} failed: {exc}",
                status_code=502,
            ) from exc

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            text = response.text.strip()
            return {"raw": text} if text else {}

    def post_json(self, payload: dict[str, Any]) -> Any:
        if not self.configured:
            raise RuntimeError("Cloud Run service URL is not configured.")

        response = self._send(payload, self._ensure_token())
        if response.status_code == 401:
            response = self._send(payload, self._get_token())

        body = self._decode(response)
        if response.status_code >= 400:
            raise UpstreamError(
                f"Upstream service {self.service_url} failed ({response.status_code}).",
                status_code=response.status_code,
                payload=body,
            )
        return body
