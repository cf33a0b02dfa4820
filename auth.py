import hmac

from fastapi import Header, HTTPException, Request


async def verify_token(request: Request, authorization: str | None = Header(default=None)):
    expected = getattr(request.app.state, "api_token", "") or ""
    if not expected:
        return None

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail={"error_code": "AUTH_MISSING_TOKEN", "error_message": "Missing authorization header"},
        )

    token = authorization[len("Bearer "):].strip()
    if not hmac.compare_digest(token, expected):
        raise HTTPException(
            status_code=401,
            detail={"error_code": "AUTH_INVALID_TOKEN", "error_message": "Invalid API token"},
        )
    return token
