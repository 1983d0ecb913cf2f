from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from stratix.core import get_logger
from stratix.db import get_db
from stratix.models import utcnow
from stratix.schemas import envelope

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/test-db")
def test_db(db: Session = Depends(get_db)):
    """Run a trivial query to confirm the database answers."""
    try:
        db.execute(text("SELECT 1")).scalar()
    except Exception as e:
        logger.error(f"Database connectivity check failed: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Database connection failed", "details": {"message": str(e)}},
        )

    return envelope(
        {"dialect": db.get_bind().dialect.name, "checkedAt": utcnow().isoformat()},
        "Database connection successful",
    )
