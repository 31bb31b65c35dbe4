import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from .errors import ProviderRejected, ProviderUnavailable
from .model import PredictionHandle

logger = logging.getLogger(__name__)


class PredictionClient:
    """
    Thin async wrapper around the Replicate predictions API.

    No retries here: every transport or HTTP failure is raised straight to
    the caller as ProviderUnavailable / ProviderRejected.
    """

    def __init__(
        self,
        api_token: str,
        model_version: str,
        base_url: str = "https://api.replicate.com/v1",
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.model_version = model_version
        self._headers = {"Authorization": f"Token {api_token}"}
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def create(self, prompt: str) -> PredictionHandle:
        payload = {"version": self.model_version, "input": {"prompt": prompt}}
        data = await self._request("POST", f"{self.base_url}/predictions", "create", json=payload)
        handle = self._parse(data, "create")
        logger.info("[PredictionClient] Created prediction %s (status=%s)", handle.id, handle.status)
        return handle

    async def fetch(self, prediction_id: str) -> PredictionHandle:
        data = await self._request("GET", f"{self.base_url}/predictions/{prediction_id}", "fetch")
        return self._parse(data, "fetch")

    @staticmethod
    def _parse(data: Any, action: str) -> PredictionHandle:
        try:
            return PredictionHandle.model_validate(data)
        except ValidationError as e:
            raise ProviderRejected(f"Replicate {action} returned an unexpected payload: {e}") from e

    async def _request(self, method: str, url: str, action: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            r = await self._http.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"Replicate {action} failed: {e}") from e

        if r.is_success:
            try:
                return r.json()
            except ValueError as e:
                raise ProviderRejected(
                    f"Replicate {action} returned invalid JSON", status_code=r.status_code, body=r.text[:500]
                ) from e

        body = r.text[:500]
        logger.warning("[PredictionClient] %s %s -> %s: %s", method, url, r.status_code, body)
        msg = f"Replicate {action} failed: {r.status_code} {body}"
        if r.status_code >= 500 or r.status_code == 429:
            raise ProviderUnavailable(msg, status_code=r.status_code, body=body)
        raise ProviderRejected(msg, status_code=r.status_code, body=body)
