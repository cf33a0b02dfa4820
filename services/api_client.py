# User value: This file talks to the DRIFT backend with request ids, timeouts and safe retries.
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from config import (
    DRIFT_API_BASE_URL,
    DRIFT_API_TOKEN,
    DRIFT_MAX_RETRIES,
    DRIFT_REQUEST_TIMEOUT_SEC,
    DRIFT_RETRY_BASE_SEC,
    DRIFT_RETRY_MAX_DELAY_SEC,
)
from schemas.job_contract import EXPORT_KINDS
from schemas.requests import ContractConfirmRequest, NameCheckRequest, VendorUpdateRequest
from schemas.responses import (
    CancelExportResponse,
    ExportProgress,
    ExportValidation,
    NameCheckResponse,
    ProcessingJob,
    UploadJobResponse,
    Vendor,
    VendorCreationResult,
)
from services.errors import ApiError, ApiHttpError, ApiNetworkError, ApiPayloadError, ApiTimeoutError
from services.upload_gate import UploadedFile
from utils.request_id import REQUEST_ID_HEADER, new_request_id

logger = logging.getLogger("drift.client")

TIMEOUT_MESSAGE = "Request timed out. Please check your connection and try again."
NETWORK_MESSAGE = "Network error. Please check your internet connection and try again."

ModelT = TypeVar("ModelT", bound=BaseModel)


# User value: spaces retries out so a struggling backend is not hammered.
def retry_delay_sec(attempt: int, *, base_sec: float = DRIFT_RETRY_BASE_SEC, max_delay_sec: float = DRIFT_RETRY_MAX_DELAY_SEC) -> float:
    return min(base_sec * (2 ** attempt), max_delay_sec)


# User value: supports _extract_error_message so users see the server's own explanation of a failure.
def _extract_error_message(response: httpx.Response) -> str:
    fallback = f"HTTP {response.status_code}: {response.reason_phrase}"
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = response.json()
        except ValueError:
            return fallback
        if isinstance(body, dict):
            for key in ("message", "error_message", "error", "detail"):
                value = body.get(key)
                if isinstance(value, dict):
                    value = value.get("error_message") or value.get("message")
                if value:
                    return str(value)
        return fallback
    text = response.text.strip()
    return text or fallback


# User value: supports _to_error_code so callers can branch on failures without parsing messages.
def _to_error_code(response: httpx.Response) -> str:
    if "application/json" in response.headers.get("content-type", ""):
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error_code"):
            return str(body["error_code"]).strip().upper()

    status_code = response.status_code
    if status_code == 400:
        return "INVALID_REQUEST"
    if status_code == 401:
        return "AUTH_UNAUTHORIZED"
    if status_code == 403:
        return "AUTH_FORBIDDEN"
    if status_code == 404:
        return "RESOURCE_NOT_FOUND"
    if status_code == 409:
        return "STATE_CONFLICT"
    if status_code == 422:
        return "VALIDATION_ERROR"
    return f"HTTP_{status_code}"


def _http_error(response: httpx.Response, request_id: str) -> ApiHttpError:
    return ApiHttpError(
        _extract_error_message(response),
        status_code=response.status_code,
        request_id=request_id,
        error_code=_to_error_code(response),
    )


def _check_export_kind(kind: str) -> str:
    if kind not in EXPORT_KINDS:
        raise ValueError(f"Unknown export kind {kind!r}; expected one of {', '.join(EXPORT_KINDS)}")
    return kind


class DriftApiClient:
    """Async client for the DRIFT contract workflow endpoints.

    Every call carries an ``X-Request-ID`` header and the configured bearer
    token. Idempotent calls are retried on 5xx responses and network errors
    with exponential backoff; timeouts and 4xx responses are never retried.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token_provider: Callable[[], str | None] | None = None,
        timeout_sec: float = DRIFT_REQUEST_TIMEOUT_SEC,
        max_retries: int = DRIFT_MAX_RETRIES,
        retry_base_sec: float = DRIFT_RETRY_BASE_SEC,
        retry_max_delay_sec: float = DRIFT_RETRY_MAX_DELAY_SEC,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.base_url = (base_url or DRIFT_API_BASE_URL).rstrip("/")
        self.timeout_sec = timeout_sec
        self.max_retries = max(0, int(max_retries))
        self.retry_base_sec = retry_base_sec
        self.retry_max_delay_sec = retry_max_delay_sec
        self._token_provider = token_provider or (lambda: DRIFT_API_TOKEN)
        self._sleep = sleep or asyncio.sleep
        self._client = http_client or httpx.AsyncClient(timeout=timeout_sec, transport=transport)
        self._owns_client = http_client is None

    async def __aenter__(self) -> "DriftApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------
    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self, request_id: str) -> dict[str, str]:
        headers = {REQUEST_ID_HEADER: request_id, "Accept": "application/json"}
        token = self._token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _backoff(self, attempt: int, *, reason: str, method: str, path: str, request_id: str) -> None:
        delay = retry_delay_sec(attempt, base_sec=self.retry_base_sec, max_delay_sec=self.retry_max_delay_sec)
        logger.warning(
            "api_request_retry reason=%s method=%s path=%s attempt=%s delay_sec=%s request_id=%s",
            reason,
            method,
            path,
            attempt + 1,
            delay,
            request_id,
        )
        await self._sleep(delay)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        idempotent: bool,
        json: Any = None,
        params: dict | None = None,
        files: dict | None = None,
    ) -> httpx.Response:
        request_id = new_request_id()
        attempt = 0
        while True:
            started = time.perf_counter()
            try:
                response = await self._client.request(
                    method,
                    self._url(path),
                    json=json,
                    params=params,
                    files=files,
                    headers=self._headers(request_id),
                    timeout=self.timeout_sec,
                )
            except httpx.TimeoutException as exc:
                logger.warning("api_request_timeout method=%s path=%s request_id=%s", method, path, request_id)
                raise ApiTimeoutError(TIMEOUT_MESSAGE, request_id=request_id, detail=str(exc)) from exc
            except httpx.RequestError as exc:
                if idempotent and attempt < self.max_retries:
                    await self._backoff(attempt, reason="network", method=method, path=path, request_id=request_id)
                    attempt += 1
                    continue
                logger.error(
                    "api_request_network_error method=%s path=%s request_id=%s error=%s: %s",
                    method,
                    path,
                    request_id,
                    exc.__class__.__name__,
                    exc,
                )
                raise ApiNetworkError(NETWORK_MESSAGE, request_id=request_id, detail=str(exc)) from exc

            duration_ms = (time.perf_counter() - started) * 1000.0
            logger.info(
                "api_request method=%s path=%s status=%s duration_ms=%.1f attempt=%s request_id=%s",
                method,
                path,
                response.status_code,
                duration_ms,
                attempt + 1,
                request_id,
            )

            if response.status_code >= 500 and idempotent and attempt < self.max_retries:
                await self._backoff(
                    attempt,
                    reason=f"http_{response.status_code}",
                    method=method,
                    path=path,
                    request_id=request_id,
                )
                attempt += 1
                continue

            if response.is_error:
                raise _http_error(response, request_id)
            return response

    def _parse(self, response: httpx.Response, model: Type[ModelT]) -> ModelT:
        request_id = response.request.headers.get(REQUEST_ID_HEADER, "") if response.request else ""
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.error("api_payload_invalid model=%s request_id=%s error=%s", model.__name__, request_id, exc)
            raise ApiPayloadError(
                f"Unexpected response from server for {model.__name__}",
                status_code=response.status_code,
                request_id=request_id,
                detail=str(exc),
            ) from exc

    def _parse_list(self, response: httpx.Response, model: Type[ModelT]) -> List[ModelT]:
        try:
            body = response.json()
        except ValueError as exc:
            raise ApiPayloadError(f"Unexpected response from server for {model.__name__} list", detail=str(exc)) from exc
        if not isinstance(body, list):
            raise ApiPayloadError(f"Unexpected response from server for {model.__name__} list")
        try:
            return [model.model_validate(item) for item in body]
        except ValidationError as exc:
            raise ApiPayloadError(f"Unexpected response from server for {model.__name__} list", detail=str(exc)) from exc

    @staticmethod
    def _multipart(file: UploadedFile) -> dict:
        try:
            data = file.read()
        except OSError as exc:
            raise ApiError(
                f"Could not read file {file.name}",
                error_code="FILE_READ_ERROR",
                detail=str(exc),
            ) from exc
        return {"file": (file.name, data, file.content_type or "application/octet-stream")}

    # ------------------------------------------------------------------
    # contract processing jobs
    # ------------------------------------------------------------------
    async def upload_contract_for_vendor_creation(self, file: UploadedFile) -> str:
        response = await self._send(
            "POST",
            "/vendors/create-from-contract/upload",
            idempotent=False,
            files=self._multipart(file),
        )
        return self._parse(response, UploadJobResponse).job_id

    async def replace_vendor_contract(self, vendor_id: str, file: UploadedFile) -> str:
        response = await self._send(
            "POST",
            f"/vendors/{vendor_id}/replace-contract",
            idempotent=False,
            files=self._multipart(file),
        )
        return self._parse(response, UploadJobResponse).job_id

    async def get_processing_job(self, job_id: str) -> ProcessingJob:
        response = await self._send("GET", f"/jobs/{job_id}", idempotent=True)
        return self._parse(response, ProcessingJob)

    async def create_vendor_from_contract(self, request: ContractConfirmRequest) -> VendorCreationResult:
        response = await self._send(
            "POST",
            "/vendors/create-from-contract/confirm",
            idempotent=False,
            json=request.model_dump(by_alias=True, exclude_none=True),
        )
        return self._parse(response, VendorCreationResult)

    async def confirm_contract_replacement(self, vendor_id: str, request: ContractConfirmRequest) -> VendorCreationResult:
        response = await self._send(
            "POST",
            f"/vendors/{vendor_id}/replace-contract/confirm",
            idempotent=False,
            json=request.model_dump(by_alias=True, exclude_none=True),
        )
        return self._parse(response, VendorCreationResult)

    # ------------------------------------------------------------------
    # vendors
    # ------------------------------------------------------------------
    async def list_vendors(self) -> List[Vendor]:
        response = await self._send("GET", "/vendors", idempotent=True)
        return self._parse_list(response, Vendor)

    async def get_vendor(self, vendor_id: str) -> Vendor:
        response = await self._send("GET", f"/vendors/{vendor_id}", idempotent=True)
        return self._parse(response, Vendor)

    async def update_vendor(self, vendor_id: str, update: VendorUpdateRequest) -> Vendor:
        response = await self._send(
            "PATCH",
            f"/vendors/{vendor_id}",
            idempotent=False,
            json=update.model_dump(by_alias=True, exclude_none=True),
        )
        return self._parse(response, Vendor)

    async def check_vendor_name(self, name: str) -> NameCheckResponse:
        payload = NameCheckRequest(name=name.strip())
        response = await self._send("POST", "/vendors/check-name", idempotent=True, json=payload.model_dump())
        return self._parse(response, NameCheckResponse)

    # ------------------------------------------------------------------
    # streaming reports
    # ------------------------------------------------------------------
    async def validate_export_params(self, kind: str, filters: dict) -> ExportValidation:
        response = await self._send(
            "POST",
            f"/streaming-reports/validate/{_check_export_kind(kind)}",
            idempotent=True,
            json=filters,
        )
        return self._parse(response, ExportValidation)

    async def get_export_progress(self, export_id: str) -> ExportProgress:
        response = await self._send("GET", f"/streaming-reports/progress/{export_id}", idempotent=True)
        return self._parse(response, ExportProgress)

    async def cancel_export(self, export_id: str) -> CancelExportResponse:
        response = await self._send("POST", f"/streaming-reports/cancel/{export_id}", idempotent=False)
        return self._parse(response, CancelExportResponse)

    async def list_active_exports(self) -> List[ExportProgress]:
        response = await self._send("GET", "/streaming-reports/active", idempotent=True)
        return self._parse_list(response, ExportProgress)

    @asynccontextmanager
    async def stream_export(self, kind: str, params: dict) -> AsyncIterator[httpx.Response]:
        """Open a streaming CSV export; the response body is read by the caller."""
        path = f"/streaming-reports/{_check_export_kind(kind)}.csv"
        request_id = new_request_id()
        try:
            async with self._client.stream(
                "GET",
                self._url(path),
                params=params,
                headers=self._headers(request_id),
                timeout=self.timeout_sec,
            ) as response:
                logger.info(
                    "api_stream_opened path=%s status=%s request_id=%s",
                    path,
                    response.status_code,
                    request_id,
                )
                if response.is_error:
                    await response.aread()
                    raise _http_error(response, request_id)
                yield response
        except httpx.TimeoutException as exc:
            logger.warning("api_stream_timeout path=%s request_id=%s", path, request_id)
            raise ApiTimeoutError(TIMEOUT_MESSAGE, request_id=request_id, detail=str(exc)) from exc
        except httpx.RequestError as exc:
            logger.error("api_stream_network_error path=%s request_id=%s error=%s", path, request_id, exc)
            raise ApiNetworkError(NETWORK_MESSAGE, request_id=request_id, detail=str(exc)) from exc
