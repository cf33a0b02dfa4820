# User value: This file hands out a ready DRIFT client, pointed at the real backend or the in-process sandbox.
import logging

import httpx

from config import DRIFT_API_BASE_URL, DRIFT_API_TOKEN
from services.api_client import DriftApiClient
from services.feature_flags import is_sandbox_backend_enabled
from startup_env import validate_client_env

logger = logging.getLogger("drift.client_factory")

SANDBOX_BASE_URL = "http://drift-sandbox/api"


def build_api_client(
    *,
    base_url: str | None = None,
    token: str | None = None,
    sandbox: bool | None = None,
    sandbox_app=None,
    **client_kwargs,
) -> DriftApiClient:
    use_sandbox = is_sandbox_backend_enabled() if sandbox is None else sandbox

    if use_sandbox:
        if sandbox_app is None:
            from app import create_app

            sandbox_app = create_app()
        sandbox_token = token if token is not None else getattr(sandbox_app.state, "api_token", "")
        logger.info("api_client_built backend=sandbox base_url=%s", SANDBOX_BASE_URL)
        return DriftApiClient(
            base_url or SANDBOX_BASE_URL,
            token_provider=lambda: sandbox_token,
            transport=httpx.ASGITransport(app=sandbox_app),
            **client_kwargs,
        )

    validate_client_env()
    resolved = base_url or DRIFT_API_BASE_URL
    logger.info("api_client_built backend=remote base_url=%s", resolved)
    return DriftApiClient(
        resolved,
        token_provider=(lambda: token) if token is not None else (lambda: DRIFT_API_TOKEN),
        **client_kwargs,
    )
