from .base import BaseRepository
from .onboarding import OnboardingSessionRepository
from .organization import OrganizationRepository
from .profile import CompanyRepository, ProfileRepository
from .invitation import (
    InvitationStore,
    InMemoryInvitationStore,
    SqlInvitationStore,
    get_invitation_store,
    memory_invitation_store,
)

__all__ = [
    "BaseRepository",
    "OnboardingSessionRepository",
    "OrganizationRepository",
    "CompanyRepository",
    "ProfileRepository",
    "InvitationStore",
    "InMemoryInvitationStore",
    "SqlInvitationStore",
    "get_invitation_store",
    "memory_invitation_store",
]
