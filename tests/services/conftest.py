import pytest
from stratix.models import Profile


@pytest.fixture
def admin(seeded_db):
    return seeded_db.get(Profile, "admin")


@pytest.fixture
def manager(seeded_db):
    return seeded_db.get(Profile, "manager")
