# User value: This file lets operators switch workflow behavior without code changes.
import os


# User value: supports _flag so a typo in an env value falls back to the documented default.
def _flag(name: str, default: bool = False) -> bool:
    raw = str(os.getenv(name, "1" if default else "0")).strip().lower()
    return raw in {"1", "true", "yes", "on"}


FEATURE_EXPORT_PREFLIGHT = _flag("FEATURE_EXPORT_PREFLIGHT", True)
FEATURE_SANDBOX_BACKEND = _flag("FEATURE_SANDBOX_BACKEND", False)


# User value: validates export filters first so users are warned before a long export starts.
def is_export_preflight_enabled() -> bool:
    return FEATURE_EXPORT_PREFLIGHT


# User value: routes the client to the in-process sandbox so workflows can be tried without a backend.
def is_sandbox_backend_enabled() -> bool:
    return FEATURE_SANDBOX_BACKEND
