from fastapi import APIRouter, Request

from schemas.job_contract import CONTRACT_VERSION

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health(request: Request):
    store = request.app.state.store
    return {
        "status": "OK",
        "contract_version": CONTRACT_VERSION,
        "vendors": len(store.vendors),
        "jobs": len(store.jobs),
    }
