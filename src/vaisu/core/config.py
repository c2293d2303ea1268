"""
Application configuration module.

All runtime parameters (server, persistence, LLM, auth, billing, email and
logging) are managed through Pydantic Settings. Values are read from
environment variables or a `.env` file; every setting has a default that is
safe for local development.
"""

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vaisu.core.logging import get_logger

logger = get_logger()


class Settings(BaseSettings):
    """
    Application settings.

    Backed by Pydantic BaseSettings so every field can be overridden from the
    environment (case-insensitive) or from `.env`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",  # env file path
        env_file_encoding="utf-8",  # env file encoding
        case_sensitive=False,  # env names are case-insensitive
        extra="ignore",  # ignore unknown env variables
    )

    # ==================== Application ====================
    app_name: str = "Vaisu API"  # application name
    app_version: str = "1.0.0"  # application version
    environment: str = "development"  # development / staging / production
    debug: bool = False  # debug mode

    # ==================== Server ====================
    host: str = "0.0.0.0"  # bind address
    port: int = 3001  # bind port
    reload: bool = False  # auto reload (development only)
    workers: int = 1  # worker processes
    max_connections: int = 1000  # max concurrent connections
    backlog: int = 2048  # pending connection queue size
    keepalive_timeout: int = 65  # keep-alive timeout (seconds)

    # Public frontend URL: CORS origin, Stripe redirects and email links
    app_url: str = "http://localhost:5173"

    # ==================== Logging ====================
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_to_console: bool = True  # log to stdout
    log_to_file: bool = False  # log to file
    log_file_path: str = "logs/app.log"  # log file path
    log_rotation: str = "100 MB"  # rotation size or interval
    log_retention: str = "30 days"  # retention of rotated files
    log_colorize_file: bool = True  # ANSI colors in file logs

    # ==================== LLM (OpenRouter) ====================
    openrouter_api_key: str = ""  # OpenRouter API key
    openrouter_base_url: str = "https://openrouter.ai/api/v1"  # OpenAI-compatible base URL
    llm_primary_model: str = "google/gemini-2.0-flash-exp:free"  # primary model
    llm_fallback_model: str = "xiaomi/mimo-v2-flash:free"  # fallback model
    llm_max_tokens: int = 50000  # max completion tokens
    llm_request_timeout: float = 120.0  # request timeout (seconds)
    llm_batch_size: int = 5  # concurrent requests per batch

    # ==================== Key-value persistence ====================
    # "local" keeps JSON files under local_data_dir, "sql" uses SQLAlchemy
    kv_backend: str = "local"
    database_url: str = "sqlite+aiosqlite:///data/vaisu.db"  # SQLAlchemy async URL
    database_pool_size: int = 5  # connection pool size (non-sqlite)
    database_max_overflow: int = 10  # pool overflow (non-sqlite)
    local_data_dir: str = "data"  # root for local JSON tables and files

    # Table names
    documents_table: str = "vaisu-documents"
    analyses_table: str = "vaisu-analyses"
    users_table: str = "vaisu-users"
    sessions_table: str = "vaisu-sessions"
    usage_limits_table: str = "vaisu-user-limits"
    audit_logs_table: str = "vaisu-audit-logs"
    knowledge_graph_table: str = "vaisu-knowledge-graph"
    argument_map_table: str = "vaisu-argument-map"
    depth_graph_table: str = "vaisu-depth-graph"
    uml_class_table: str = "vaisu-uml-class"
    mind_map_table: str = "vaisu-mind-map"
    flowchart_table: str = "vaisu-flowchart"
    executive_dashboard_table: str = "vaisu-executive-dashboard"
    timeline_table: str = "vaisu-timeline"
    terms_definitions_table: str = "vaisu-terms-definitions"
    entity_graph_table: str = "vaisu-entity-graph"

    # ==================== Object storage ====================
    # "local" keeps files under local_data_dir/files, "minio" uses an S3 API
    object_backend: str = "local"
    minio_endpoint: str = "localhost:9000"  # MinIO / S3 endpoint
    minio_access_key: str = ""  # access key
    minio_secret_key: str = ""  # secret key
    minio_secure: bool = False  # use HTTPS
    minio_region: str = "us-east-1"  # bucket region
    s3_bucket_name: str = "vaisu-documents-dev"  # document bucket
    presigned_url_expiry: int = 900  # presigned URL lifetime (seconds)

    # ==================== Auth ====================
    jwt_secret: str = "change-me-in-production"  # HS256 signing secret
    jwt_issuer: str = "vaisu-auth"  # token issuer
    access_token_expires_minutes: int = 15  # access token lifetime
    refresh_token_expires_days: int = 30  # refresh token lifetime
    session_expires_days: int = 30  # session lifetime

    # ==================== Rate limiting ====================
    rate_limit_window_seconds: int = 15 * 60  # fixed window length
    rate_limit_max_requests: int = 100  # general requests per window
    login_rate_limit_max_requests: int = 5  # login attempts per window

    # ==================== Uploads ====================
    max_upload_size: int = 1024 * 1024 * 1024  # 1 GiB

    # ==================== Email (Resend) ====================
    resend_api_key: str = ""  # Resend API key
    resend_base_url: str = "https://api.resend.com"  # Resend API base URL
    email_from: str = "onboarding@resend.dev"  # sender address

    # ==================== Billing (Stripe) ====================
    stripe_secret_key: str = ""  # Stripe secret key
    stripe_webhook_secret: str = ""  # webhook signing secret
    stripe_price_id_pro: str = ""  # Pro plan price id
    stripe_api_base: str = "https://api.stripe.com"  # Stripe API base URL
    stripe_webhook_tolerance: int = 300  # signature timestamp tolerance (seconds)

    @computed_field
    @property
    def persistence_enabled(self) -> bool:
        """
        Whether records go to the shared database.

        Returns:
            bool: True when the SQL key-value backend is configured
        """
        return self.kv_backend == "sql"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """
        Allowed CORS origins, parsed from the comma separated app URL.

        Returns:
            list[str]: origin list
        """
        return [origin.strip() for origin in self.app_url.split(",") if origin.strip()]

    def validate_storage_config(self) -> list[str]:
        """
        Check the settings the configured storage backends depend on.

        Returns:
            list[str]: names of missing settings, empty when complete
        """
        missing: list[str] = []
        if self.kv_backend == "sql" and not self.database_url:
            missing.append("database_url")
        if self.object_backend == "minio":
            for name in ("minio_endpoint", "minio_access_key", "minio_secret_key"):
                if not getattr(self, name):
                    missing.append(name)

        for name in missing:
            logger.warning(f"Storage setting missing: {name.upper()}")
        return missing


# Global settings instance shared by the application
settings = Settings()
