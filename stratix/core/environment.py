"""Startup validation of environment variables.

Run ``python -m stratix.core.environment`` as a build step; it exits
non-zero when a required variable is missing or malformed.
"""

import os
import sys
from dataclasses import dataclass, field
from typing import List, Mapping, Optional
from urllib.parse import urlparse

from .logging import get_logger

logger = get_logger(__name__)

STACK_VARS = (
    "NEXT_PUBLIC_STACK_PROJECT_ID",
    "NEXT_PUBLIC_STACK_PUBLISHABLE_CLIENT_KEY",
    "STACK_SECRET_SERVER_KEY",
)


class EnvironmentConfigError(RuntimeError):
    """Raised when required configuration is missing or malformed."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("Invalid environment configuration: " + "; ".join(errors))


@dataclass
class EnvironmentReport:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme) and (bool(parsed.netloc) or parsed.scheme.startswith("sqlite"))


def validate_environment(env: Optional[Mapping[str, str]] = None) -> EnvironmentReport:
    """Check the variables the service needs, without raising."""
    env = os.environ if env is None else env
    report = EnvironmentReport()
    environment = env.get("ENVIRONMENT", "development")
    production = environment == "production"

    database_url = env.get("DATABASE_URL")
    if not database_url:
        if production:
            report.error("DATABASE_URL is required")
        else:
            report.warnings.append("DATABASE_URL is not set, using local SQLite database")
    elif not _is_url(database_url):
        report.error("DATABASE_URL must be a valid URL")
    elif production and "neon.tech" not in database_url:
        report.warnings.append("DATABASE_URL does not appear to be a Neon database URL")

    unpooled = env.get("DATABASE_URL_UNPOOLED")
    if unpooled and not _is_url(unpooled):
        report.error("DATABASE_URL_UNPOOLED must be a valid URL")

    for name in STACK_VARS:
        if not env.get(name):
            if production:
                report.error(f"{name} is required")
            else:
                report.warnings.append(f"{name} is not set, authentication will reject all tokens")

    project_id = env.get("NEXT_PUBLIC_STACK_PROJECT_ID")
    if project_id and len(project_id) < 10:
        report.error("NEXT_PUBLIC_STACK_PROJECT_ID appears to be invalid (too short)")

    publishable_key = env.get("NEXT_PUBLIC_STACK_PUBLISHABLE_CLIENT_KEY")
    if publishable_key and not publishable_key.startswith("pck_"):
        report.error('NEXT_PUBLIC_STACK_PUBLISHABLE_CLIENT_KEY must start with "pck_"')

    secret_key = env.get("STACK_SECRET_SERVER_KEY")
    if secret_key and not secret_key.startswith("ssk_"):
        report.error('STACK_SECRET_SERVER_KEY must start with "ssk_"')

    gateway_key = env.get("AI_GATEWAY_API_KEY")
    if gateway_key and not gateway_key.startswith("vck_"):
        report.error('AI_GATEWAY_API_KEY must start with "vck_"')

    enabled_ai_flags = [
        name for name, value in env.items()
        if name.startswith("FEATURE_AI_") and str(value).lower() in ("1", "true", "yes", "on")
    ]
    if enabled_ai_flags and not gateway_key:
        report.warnings.append(
            f"{', '.join(sorted(enabled_ai_flags))} enabled without AI_GATEWAY_API_KEY, AI features will be skipped"
        )

    return report


def ensure_environment(env: Optional[Mapping[str, str]] = None) -> EnvironmentReport:
    """Validate and log; raise EnvironmentConfigError if the configuration is unusable."""
    report = validate_environment(env)
    for warning in report.warnings:
        logger.warning(f"Environment: {warning}")
    for error in report.errors:
        logger.error(f"Environment: {error}")
    if not report.is_valid:
        raise EnvironmentConfigError(report.errors)
    return report


def main() -> int:
    from .logging import setup_logging

    setup_logging()
    try:
        ensure_environment()
    except EnvironmentConfigError:
        return 1
    logger.info("Environment configuration is valid")
    return 0


if __name__ == "__main__":
    sys.exit(main())
