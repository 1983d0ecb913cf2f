from __future__ import annotations

import os
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from sqlalchemy.orm import sessionmaker

from stratix.core.roles import RoleType
from stratix.db import Base, make_engine
from stratix.models import Company, Profile, ProfileStatusEnum

TEST_DATABASE_URL = "sqlite:///./test.db"

TEST_COMPANIES = [
    {"id": "company_1", "name": "Acme México", "industry": "technology"},
    {"id": "company_2", "name": "Globex Latam", "industry": "retail"},
]

TEST_PROFILES = [
    {"id": "user_test", "email": "admin@acme.mx", "display_name": "Test Admin",
     "role_type": RoleType.corporativo, "company_id": "company_1", "department_id": None},
    {"id": "user_1", "email": "john.doe@acme.mx", "display_name": "John Doe",
     "role_type": RoleType.gerente, "company_id": "company_1", "department_id": "dept_1"},
    {"id": "user_2", "email": "jane.smith@acme.mx", "display_name": "Jane Smith",
     "role_type": RoleType.empleado, "company_id": "company_1", "department_id": "dept_2"},
    {"id": "user_3", "email": "carlos.ruiz@globex.mx", "display_name": "Carlos Ruiz",
     "role_type": RoleType.empleado, "company_id": "company_2", "department_id": "dept_3"},
    {"id": "user_4", "email": "ana.lopez@globex.mx", "display_name": "Ana López",
     "role_type": RoleType.gerente, "company_id": "company_2", "department_id": "dept_3"},
    {"id": "user_5", "email": "pedro.garcia@acme.mx", "display_name": "Pedro García",
     "role_type": RoleType.empleado, "company_id": "company_1", "department_id": "dept_1",
     "status": ProfileStatusEnum.pending},
]

# Authenticated users that have no profile row
PROFILELESS_USERS = {"user_new": "nuevo@acme.mx"}

_test_engine = None
TestingSessionLocal: Optional[sessionmaker] = None


def is_test_mode() -> bool:
    return os.getenv("STRATIX_TEST_MODE") == "1"


def seed_test_data() -> None:
    """Recreate the test schema and load the fixed companies and profiles."""
    Base.metadata.drop_all(bind=_test_engine)
    Base.metadata.create_all(bind=_test_engine)

    with TestingSessionLocal() as db:
        for company in TEST_COMPANIES:
            db.add(Company(**company))
        for profile in TEST_PROFILES:
            db.add(Profile(**profile))
        db.commit()


def reset_test_state() -> None:
    """Fresh database plus empty process-wide stores, caches and counters."""
    from stratix.core.cache import onboarding_status_cache
    from stratix.core.rate_limit import rate_limiter
    from stratix.repositories import memory_invitation_store
    from stratix.services.analytics import analytics
    from stratix.services.dashboard import security_alerts
    from stratix.services.sync_logging import sync_logger
    from stratix.services.transformation import transformation_cache
    from stratix.services.validation import validation_cache

    if TestingSessionLocal is not None:
        seed_test_data()
    rate_limiter.reset()
    memory_invitation_store.clear()
    for cache in (onboarding_status_cache, transformation_cache, validation_cache):
        cache.clear()
    analytics.clear()
    sync_logger.reset()
    security_alerts.reset()


def _test_user(user_id: str) -> Dict[str, Optional[str]]:
    for profile in TEST_PROFILES:
        if profile["id"] == user_id:
            return {"user_id": user_id, "email": profile["email"], "name": profile["display_name"]}
    return {"user_id": user_id, "email": PROFILELESS_USERS.get(user_id), "name": None}


def configure_test_overrides(app: FastAPI) -> None:
    global _test_engine, TestingSessionLocal
    from stratix.api.auth import get_current_user_dep
    from stratix.db import get_db as real_get_db

    _test_engine = make_engine(TEST_DATABASE_URL)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)
    seed_test_data()

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    def override_current_user_dep(request: Request):
        if request.headers.get("x-test-anonymous") == "1":
            raise HTTPException(status_code=401, detail="Unauthorized")
        return _test_user(request.headers.get("x-test-user-id") or "user_test")

    app.dependency_overrides[real_get_db] = override_get_db
    app.dependency_overrides[get_current_user_dep] = override_current_user_dep
