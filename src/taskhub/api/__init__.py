"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter where a whole router shares one rule:
- /api/auth — open; register/login are public, the rest declare
  get_current_identity per route
- /api/tasks — any authenticated identity; mutating routes add
  require_non_admin themselves
- /api/admin — admin only
The health check lives outside /api (see main.py).
"""

from fastapi import APIRouter, Depends

from taskhub.api.admin import router as admin_router
from taskhub.api.auth import router as auth_router
from taskhub.api.tasks import router as tasks_router
from taskhub.auth.dependencies import get_current_identity, require_admin

api_router = APIRouter(prefix="/api")

# Open routes, auth declared per route
api_router.include_router(auth_router, tags=["auth"])

# Protected routes
api_router.include_router(
    tasks_router, tags=["tasks"], dependencies=[Depends(get_current_identity)]
)
api_router.include_router(
    admin_router, tags=["admin"], dependencies=[Depends(require_admin)]
)
