# ABOUTME: Async HTTP transport for the Kubernetes REST API with retry logic
# ABOUTME: Builds TLS from kubeconfig material, maps HTTP failures to package errors

"""
Async Kubernetes API transport using httpx.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Every domain client (workloads, network, storage, ...) talks to the cluster
through ONE KubeClient. KubeClient knows nothing about Deployments or
Services; it knows how to:

1. AUTHENTICATE: bearer token, token file, or client certificate
2. VERIFY TLS: cluster CA from the kubeconfig (inline or file)
3. SEND the five verbs the package needs: get, list, create/replace, patch, delete
4. TRANSLATE failures into the package's error hierarchy
5. MASK Secret payloads before they leave the transport

=============================================================================
KUBERNETES API PATHS
=============================================================================

Core group resources live under /api/v1, everything else under
/apis/<group>/<version>:

    /api/v1/namespaces/default/pods
    /apis/apps/v1/namespaces/default/deployments/web
    /api/v1/nodes                       (cluster scoped, no namespace)

resource_path() builds these so domain clients never format URLs by hand.

=============================================================================
RETRIES
=============================================================================

Only GET is retried. A write that timed out may still have been applied by
the API server; retrying a merge patch or a full replace could apply it twice.
"""

from __future__ import annotations

import copy
import os
import re
import ssl
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clusterpilot_mcp.errors import (
    ConflictError,
    NotFoundError,
    StaleHandleError,
    TransportError,
)

if TYPE_CHECKING:
    from clusterpilot_mcp.kubeconfig import ConnectionProfile

logger = structlog.get_logger(__name__)

MERGE_PATCH = "application/merge-patch+json"
MASKED = "***MASKED***"

# =============================================================================
# SECRET MASKING
# =============================================================================

# Applied to free-form text only (error bodies). Object payloads are masked
# structurally by mask_secret_payload() because key-based masking would also
# rewrite pod templates (secretKeyRef.key, for example).
SECRET_PATTERNS = [
    (re.compile(r"(token[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), r"\1" + MASKED),
    (re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)[^\"'\s,}]+", re.I), r"\1" + MASKED),
    (re.compile(r"(bearer\s+)[^\s\"']+", re.I), r"\1" + MASKED),
]


def mask_text(text: str) -> str:
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_secret_payload(data: dict[str, Any]) -> dict[str, Any]:
    """
    Replace the values of Secret data/stringData with a placeholder.

    Handles a single Secret and a SecretList. Other kinds pass through
    untouched. Keys are kept so callers can still see what a Secret holds.
    """
    kind = data.get("kind")
    if kind == "SecretList":
        masked = dict(data)
        masked["items"] = [mask_secret_payload({"kind": "Secret", **item}) for item in data.get("items") or []]
        return masked
    if kind != "Secret":
        return data
    masked = copy.deepcopy(data)
    for section in ("data", "stringData"):
        values = masked.get(section)
        if isinstance(values, dict):
            masked[section] = {k: MASKED for k in values}
    return masked


# =============================================================================
# PATH HELPERS
# =============================================================================


def resource_path(
    group_version: str,
    plural: str,
    namespace: str | None = None,
    name: str | None = None,
) -> str:
    """
    Build a REST path for a resource collection or a single object.

    Example:
        resource_path("apps/v1", "deployments", "prod", "web")
        -> "/apis/apps/v1/namespaces/prod/deployments/web"
    """
    prefix = "/api/v1" if group_version == "v1" else f"/apis/{group_version}"
    path = prefix
    if namespace:
        path += f"/namespaces/{namespace}"
    path += f"/{plural}"
    if name:
        path += f"/{name}"
    return path


_NAMESPACE_IN_PATH = re.compile(r"/namespaces/([^/]+)/")


# =============================================================================
# CLIENT
# =============================================================================


class KubeClient:
    """
    Async Kubernetes API client bound to ONE context.

    LIFECYCLE:
    ----------
        async with KubeClient(profile) as client:
            pods = await client.list_items("/api/v1/namespaces/default/pods")

    Once closed, the client is STALE: every further call raises
    StaleHandleError instead of silently opening a new connection. That is
    what makes a handle kept across a context switch fail loudly.
    """

    def __init__(
        self,
        profile: ConnectionProfile,
        timeout: float = 30.0,
        mask_secrets: bool = True,
    ) -> None:
        self._profile = profile
        self._timeout = timeout
        self._mask_secrets = mask_secrets
        self._client: httpx.AsyncClient | None = None
        self._closed = False

    @property
    def context(self) -> str:
        return self._profile.context

    @property
    def default_namespace(self) -> str:
        return self._profile.default_namespace

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> KubeClient:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def open(self) -> None:
        if self._closed:
            raise StaleHandleError(self.context)
        if self._client is not None:
            return
        headers = {"Accept": "application/json"}
        token = self._read_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=self._profile.server,
            headers=headers,
            timeout=self._timeout,
            verify=self._build_ssl_context(),
        )
        logger.debug("Kubernetes client opened", context=self.context, server=self._profile.server)

    async def close(self) -> None:
        self._closed = True
        if self._client:
            await self._client.aclose()
            self._client = None

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    def _read_token(self) -> str | None:
        if self._profile.token:
            return self._profile.token
        if self._profile.token_file:
            try:
                return Path(self._profile.token_file).read_text(encoding="utf-8").strip()
            except OSError as e:
                raise TransportError(0, f"Cannot read token file {self._profile.token_file}", str(e)) from e
        return None

    def _build_ssl_context(self) -> ssl.SSLContext:
        profile = self._profile
        try:
            if profile.insecure_skip_tls_verify:
                ctx = ssl.create_default_context()
                ctx.check_hostname = False
                ctx.verify_mode = ssl.CERT_NONE
            else:
                ctx = ssl.create_default_context(
                    cafile=profile.certificate_authority,
                    cadata=profile.certificate_authority_data.decode() if profile.certificate_authority_data else None,
                )
            self._load_client_cert(ctx)
        except (OSError, ssl.SSLError, ValueError) as e:
            raise TransportError(0, f"Invalid TLS material for context '{profile.context}'", str(e)) from e
        return ctx

    def _load_client_cert(self, ctx: ssl.SSLContext) -> None:
        profile = self._profile
        cert_file, key_file = profile.client_certificate, profile.client_key
        if not (cert_file or profile.client_certificate_data):
            return
        # load_cert_chain only accepts paths; inline PEM goes through short-lived files
        temp_paths: list[str] = []
        try:
            if profile.client_certificate_data:
                cert_file = _write_temp_pem(profile.client_certificate_data)
                temp_paths.append(cert_file)
            if profile.client_key_data:
                key_file = _write_temp_pem(profile.client_key_data)
                temp_paths.append(key_file)
            ctx.load_cert_chain(certfile=cert_file, keyfile=key_file)  # type: ignore[arg-type]
        finally:
            for path in temp_paths:
                os.unlink(path)

    # -------------------------------------------------------------------------
    # Core request handling
    # -------------------------------------------------------------------------

    def _require_client(self) -> httpx.AsyncClient:
        if self._closed:
            raise StaleHandleError(self.context)
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _send_read(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        return await self._require_client().get(path, params=params)

    async def _send_write(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None,
        content_type: str,
    ) -> httpx.Response:
        headers = {"Content-Type": content_type} if body is not None else None
        return await self._require_client().request(method, path, json=body, headers=headers)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        content_type: str = "application/json",
    ) -> dict[str, Any]:
        """
        Send one request and decode the JSON answer.

        Raises:
            NotFoundError: HTTP 404
            ConflictError: HTTP 409 (stale resourceVersion, or already exists)
            TransportError: any other HTTP error, or no response at all
            StaleHandleError: the client was closed by a context switch
        """
        log = logger.bind(method=method, path=path, context=self.context)
        log.debug("Making Kubernetes API request")
        try:
            if method == "GET":
                response = await self._send_read(path, params)
            else:
                response = await self._send_write(method, path, body, content_type)
        except httpx.HTTPError as e:
            log.warning("Kubernetes API unreachable", error=str(e))
            raise TransportError(0, type(e).__name__, mask_text(str(e)) or None) from e

        if response.status_code >= 400:
            self._raise_for_status(response, path, log)

        result = response.json() if response.content else {}
        if not isinstance(result, dict):
            return {}
        if self._mask_secrets:
            result = mask_secret_payload(result)
        return result

    def _raise_for_status(self, response: httpx.Response, path: str, log: Any) -> None:
        error_body = mask_text(response.text)
        log.warning("Kubernetes API error", status=response.status_code, body=error_body[:200])

        message = f"HTTP {response.status_code}"
        details: str | None = None
        status_details: dict[str, Any] = {}
        try:
            error_json = response.json()
            message = mask_text(error_json.get("message", message))
            details = error_json.get("reason")
            status_details = error_json.get("details") or {}
        except ValueError:
            details = error_body[:200] if error_body else None

        if response.status_code == 404:
            match = _NAMESPACE_IN_PATH.search(path + "/")
            raise NotFoundError(
                status_details.get("kind") or "Resource",
                status_details.get("name") or path.rstrip("/").rsplit("/", 1)[-1],
                match.group(1) if match else None,
            )
        if response.status_code == 409:
            raise ConflictError(409, message, details)
        raise TransportError(response.status_code, message, details)

    # -------------------------------------------------------------------------
    # Verbs
    # -------------------------------------------------------------------------

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def list_items(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        data = await self._request("GET", path, params=params)
        return data.get("items") or []

    async def create(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", path, body=body)

    async def replace(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """
        Full update. When body carries metadata.resourceVersion the API
        server rejects it with 409 if the object changed since it was read.
        """
        return await self._request("PUT", path, body=body)

    async def patch(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """JSON merge patch (RFC 7386): only fields present in body change."""
        return await self._request("PATCH", path, body=body, content_type=MERGE_PATCH)

    async def delete(self, path: str) -> dict[str, Any]:
        return await self._request("DELETE", path)


def _write_temp_pem(data: bytes) -> str:
    fd, name = tempfile.mkstemp(suffix=".pem")
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)
    return name
