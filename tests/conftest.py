import os
import sys

import pytest

# Enable application test-mode overrides (isolated DB + header auth)
os.environ.setdefault("STRATIX_TEST_MODE", "1")

# Ensure project root is on sys.path so `import stratix` works in all environments
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


@pytest.fixture(autouse=True)
def reset_state():
    """Each test starts from the seeded database and empty in-process stores."""
    from stratix.testing import reset_test_state

    reset_test_state()
    yield


@pytest.fixture
def test_db():
    """Create an in-memory SQLite database for testing."""
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from stratix.db import Base, enable_sqlite_savepoints

    engine = enable_sqlite_savepoints(create_engine("sqlite:///:memory:", echo=False))
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    yield session

    session.close()


@pytest.fixture
def seeded_db(test_db):
    """Two companies with an admin, a manager and employees."""
    from stratix.core.roles import RoleType
    from stratix.models import Company, Profile

    test_db.add_all([
        Company(id="company_1", name="Acme México", industry="technology"),
        Company(id="company_2", name="Globex Latam", industry="retail"),
    ])
    test_db.add_all([
        Profile(id="admin", email="admin@acme.mx", display_name="Admin", role_type=RoleType.corporativo, company_id="company_1"),
        Profile(id="manager", email="manager@acme.mx", display_name="Manager", role_type=RoleType.gerente, company_id="company_1"),
        Profile(id="emp_1", email="emp1@acme.mx", display_name="Luis Pérez", role_type=RoleType.empleado, company_id="company_1"),
        Profile(id="emp_2", email="emp2@globex.mx", display_name="Sofía Ramos", role_type=RoleType.empleado, company_id="company_2"),
    ])
    test_db.commit()
    return test_db


# Step payloads that satisfy every step schema
@pytest.fixture
def welcome_step():
    return {
        "firstName": "María",
        "lastName": "González",
        "email": "maria@acme.mx",
        "jobTitle": "Directora de Operaciones",
        "timezone": "America/Mexico_City",
        "language": "es",
        "communicationPreferences": {
            "emailNotifications": True,
            "smsNotifications": False,
            "pushNotifications": True,
            "weeklyReports": True,
        },
    }


@pytest.fixture
def company_step():
    return {
        "organizationName": "Acme México",
        "industry": "technology",
        "organizationSize": "small",
        "employeeCount": 25,
        "website": "https://www.acme.mx/",
        "description": "Plataforma de logística para comercios locales",
        "country": "México",
        "city": "Monterrey",
        "departments": ["Producto", "Ventas"],
    }


@pytest.fixture
def strategy_step():
    return {
        "businessGoals": ["Crecer ingresos", "Expandir a Colombia"],
        "timeHorizon": "annual",
        "currentChallenges": ["alignment"],
        "successMetrics": [
            {"name": "MRR", "target": "100000", "unit": "MXN", "frequency": "monthly"},
            {"name": "Clientes", "target": "500", "unit": "cuentas", "frequency": "quarterly"},
        ],
        "okrMaturity": "developing",
        "strategicPriorities": ["Crecimiento"],
    }


@pytest.fixture
def okr_step():
    return {
        "okrCycle": "quarterly",
        "reviewFrequency": "weekly",
        "objectives": [
            {
                "title": "Duplicar ingresos recurrentes",
                "description": "Crecer el MRR con clientes medianos",
                "owner": "user_test",
                "priority": "high",
                "category": "growth",
                "keyResults": [
                    {"title": "Alcanzar 100k MRR", "metric": "MRR", "target": "100000", "unit": "MXN", "baseline": "50000"},
                ],
            },
            {
                "title": "Abrir operación en Colombia",
                "description": "Primeros clientes fuera de México",
                "owner": "user_test",
                "priority": "medium",
                "category": "expansion",
                "keyResults": [
                    {"title": "Firmar 20 clientes", "metric": "Clientes", "target": "20", "unit": "cuentas", "baseline": "0"},
                ],
            },
        ],
        "teamStructure": {"departments": ["Producto", "Ventas"], "roles": ["Líder"], "hierarchyLevels": 2},
        "trackingPreferences": {
            "updateFrequency": "weekly",
            "notificationSettings": {"deadlineReminders": True, "progressAlerts": True, "teamUpdates": False},
            "reportingFormat": "dashboard",
        },
    }


@pytest.fixture
def review_step():
    return {
        "finalReview": True,
        "termsAccepted": True,
        "dataProcessingConsent": True,
        "launchPreferences": {
            "sendInvitations": True,
            "scheduleKickoff": False,
            "enableNotifications": True,
            "setupIntegrations": False,
        },
    }


@pytest.fixture
def wizard_data(welcome_step, company_step, strategy_step, okr_step, review_step):
    """Complete form data keyed by step number, as stored on a session."""
    return {"1": welcome_step, "2": company_step, "3": strategy_step, "4": okr_step, "5": review_step}
