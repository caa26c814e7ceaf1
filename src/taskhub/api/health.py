"""Health check endpoint.

Learn: Liveness check, unauthenticated. Always answers 200 while the
process is up; database reachability is reported in the body so a broken
database shows up without taking the check down.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub import __version__
from taskhub.db.engine import get_db

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Report server liveness and database connectivity."""
    checks = {"version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    return {"success": True, "message": "API is running", **checks}
