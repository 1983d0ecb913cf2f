from pydantic import BaseModel
from typing import Optional, List, Dict
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Application settings and configuration."""

    # Database
    database_url: str = "sqlite:///./stratix.db"
    database_url_unpooled: Optional[str] = None
    neon_project_id: Optional[str] = None

    # API
    api_title: str = "Stratix OKR API"
    api_version: str = "0.1.0"
    api_description: str = "OKR onboarding wizard and administration API"

    # CORS
    cors_origins: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Environment
    environment: str = "development"
    debug: bool = True

    # Authentication (Stack Auth)
    stack_project_id: Optional[str] = None
    stack_publishable_client_key: Optional[str] = None
    stack_secret_server_key: Optional[str] = None
    jwt_secret: Optional[str] = None
    session_cookie_name: str = "stack-access"

    # AI gateway
    ai_gateway_url: Optional[str] = None
    ai_gateway_api_key: Optional[str] = None
    ai_timeout_seconds: float = 5.0
    feature_ai_validation: bool = False
    feature_ai_enhancement: bool = False
    feature_ai_insights: bool = False

    # Onboarding
    onboarding_session_ttl_hours: int = 24
    validation_cache_ttl_seconds: int = 300
    transformation_cache_ttl_seconds: int = 3600
    status_cache_ttl_seconds: int = 60
    onboarding_strict_mode: bool = False

    # Admin
    invitation_store: str = "memory"
    invitation_default_expiry_hours: int = 72

    # Rate limiting (requests per window, per user and category)
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 3600
    rate_limit_storage_uri: str = "memory://"
    rate_limits: Dict[str, int] = {
        "standard": 50,
        "ai": 20,
        "session": 10,
        "organization": 30,
    }

    @property
    def token_secret(self) -> Optional[str]:
        """Secret used to verify session tokens."""
        return self.jwt_secret or self.stack_secret_server_key

    @property
    def ai_gateway_configured(self) -> bool:
        return bool(self.ai_gateway_url and self.ai_gateway_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        from dotenv import load_dotenv

        # Load .env.local first, then .env (if they exist)
        load_dotenv(".env.local", override=True)
        load_dotenv(".env", override=False)
        cors_origins_str = os.getenv("CORS_ORIGINS", "")
        if cors_origins_str:
            cors_origins = [origin.strip() for origin in cors_origins_str.split(",")]
        else:
            cors_origins = [
                "http://localhost:3000",
                "http://127.0.0.1:3000",
            ]

        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./stratix.db"),
            database_url_unpooled=os.getenv("DATABASE_URL_UNPOOLED"),
            neon_project_id=os.getenv("NEON_PROJECT_ID"),
            api_title=os.getenv("API_TITLE", "Stratix OKR API"),
            api_version=os.getenv("API_VERSION", "0.1.0"),
            cors_origins=cors_origins,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            environment=os.getenv("ENVIRONMENT", "development"),
            debug=_env_flag("DEBUG", "true"),
            stack_project_id=os.getenv("NEXT_PUBLIC_STACK_PROJECT_ID"),
            stack_publishable_client_key=os.getenv("NEXT_PUBLIC_STACK_PUBLISHABLE_CLIENT_KEY"),
            stack_secret_server_key=os.getenv("STACK_SECRET_SERVER_KEY"),
            jwt_secret=os.getenv("JWT_SECRET"),
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "stack-access"),
            ai_gateway_url=os.getenv("AI_GATEWAY_URL"),
            ai_gateway_api_key=os.getenv("AI_GATEWAY_API_KEY"),
            ai_timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "5")),
            feature_ai_validation=_env_flag("FEATURE_AI_VALIDATION"),
            feature_ai_enhancement=_env_flag("FEATURE_AI_ENHANCEMENT"),
            feature_ai_insights=_env_flag("FEATURE_AI_INSIGHTS"),
            onboarding_session_ttl_hours=int(os.getenv("ONBOARDING_SESSION_TTL_HOURS", "24")),
            validation_cache_ttl_seconds=int(os.getenv("VALIDATION_CACHE_TTL_SECONDS", "300")),
            transformation_cache_ttl_seconds=int(os.getenv("TRANSFORMATION_CACHE_TTL_SECONDS", "3600")),
            onboarding_strict_mode=_env_flag("ONBOARDING_STRICT_MODE"),
            invitation_store=os.getenv("INVITATION_STORE", "memory"),
            invitation_default_expiry_hours=int(os.getenv("INVITATION_DEFAULT_EXPIRY_HOURS", "72")),
            rate_limit_enabled=_env_flag("RATE_LIMIT_ENABLED", "true"),
            rate_limit_storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
        )


# Global settings instance
settings = Settings.from_env()
