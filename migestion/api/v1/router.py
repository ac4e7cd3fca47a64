# migestion/api/v1/router.py
from fastapi import APIRouter

from migestion.api.v1 import audit, auth
from migestion.schemas.common import ErrorEnvelope

# documented error shape; the handlers in migestion.main produce it
ERROR_RESPONSES = {
    status: {"model": ErrorEnvelope}
    for status in (400, 401, 403, 404, 409, 429)
}

api_router = APIRouter(responses=ERROR_RESPONSES)

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
# tenant-scoped, tenant admins only
api_router.include_router(audit.router, prefix="/audit", tags=["audit"])
