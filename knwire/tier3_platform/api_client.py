"""
knwire.tier3_platform.api_client
─────────────────────────────────
HTTP client for the Kubernetes API server. Adds bearer-token auth, pass
deadline propagation and structured error mapping to every request:

    404 → NotFoundError
    409 → ConflictError
    anything else that fails → UpstreamError

Backed by: httpx (sync). Tests inject an ``httpx.MockTransport``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from knwire.tier0_core.errors import ConflictError, NotFoundError, UpstreamError
from knwire.tier0_core.logging import get_logger
from knwire.tier1_runtime.context import PassContext, get_context

log = get_logger(__name__)


class KubeApiClient:
    """
    Sync HTTP client for the Kubernetes REST API.

    Usage::

        client = KubeApiClient("https://kubernetes.default.svc", token="...")
        obj = client.get("/apis/messaging.knative.dev/v1alpha1/namespaces/default/channels/orders")
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        verify: bool | str = True,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._http = httpx.Client(
            base_url=self._base_url,
            verify=verify,
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> KubeApiClient:
        """Build an in-cluster client from the service account mounted in the pod."""
        from knwire.tier0_core.config import get_config

        cfg = get_config()
        token_file = Path(cfg.kube_token_path)
        token = token_file.read_text().strip() if token_file.exists() else None
        ca_file = Path(cfg.kube_ca_path)
        return cls(
            cfg.kube_api_url,
            token=token,
            verify=str(ca_file) if ca_file.exists() else True,
            timeout=cfg.registry_timeout,
        )

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _effective_timeout(self, ctx: PassContext) -> float:
        remaining = ctx.remaining()
        if remaining is None:
            return self._timeout
        return min(self._timeout, remaining)

    def get(self, path: str, **kwargs: Any) -> Any:
        return self._request("GET", path, **kwargs)

    def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return self._request("POST", path, json=json, **kwargs)

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        ctx = get_context()
        ctx.check()
        headers = {**self._build_headers(), **kwargs.pop("headers", {})}
        try:
            response = self._http.request(
                method,
                path,
                headers=headers,
                timeout=self._effective_timeout(ctx),
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            # a timeout caused by the pass deadline is a cancellation, not an upstream fault
            ctx.check()
            raise UpstreamError(
                user_message=f"{method} {path} timed out",
                detail=str(exc),
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                user_message=f"{method} {path} failed: {exc}",
                detail=str(exc),
            ) from exc

        log.debug("kube.request", method=method, path=path, status=response.status_code)

        if response.status_code == 404:
            raise NotFoundError(user_message=f"{path} not found", path=path)
        if response.status_code == 409:
            raise ConflictError(user_message=f"{path} already exists", path=path)
        if response.is_error:
            raise UpstreamError(
                user_message=f"{method} {path} returned {response.status_code}",
                detail=response.text,
                status_code=response.status_code,
            )
        if response.headers.get("content-type", "").startswith("application/json"):
            return response.json()
        return response.text


__all__ = ["KubeApiClient"]
