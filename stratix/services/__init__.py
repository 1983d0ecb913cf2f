from .base import BaseService
from .onboarding import OnboardingService
from .transformation import WizardDataTransformationPipeline, create_transformation_pipeline
from .validation import OnboardingValidationService, create_validation_service
from .wizard_transformer import WizardDataTransformer, create_wizard_data_transformer
from .admin_users import AdminUserService
from .invitations import InvitationService
from .dashboard import AdminDashboardService
from .sync_logging import SyncLoggingService, sync_logger

__all__ = [
    "BaseService",
    "OnboardingService",
    "WizardDataTransformationPipeline",
    "create_transformation_pipeline",
    "OnboardingValidationService",
    "create_validation_service",
    "WizardDataTransformer",
    "create_wizard_data_transformer",
    "AdminUserService",
    "InvitationService",
    "AdminDashboardService",
    "SyncLoggingService",
    "sync_logger",
]
