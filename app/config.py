import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/posh_compliance"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "text")

    # Celery
    celery_broker_url: str = os.getenv(
        "CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )

    # Workflow automation (n8n) webhooks
    n8n_webhook_base_url: str = os.getenv(
        "N8N_WEBHOOK_BASE_URL", "https://your-n8n-instance.com"
    ).rstrip("/")
    n8n_api_key: str | None = os.getenv("N8N_API_KEY") or None
    n8n_case_created_url: str | None = os.getenv("N8N_WEBHOOK_CASE_CREATED_URL") or None
    n8n_evidence_uploaded_url: str | None = (
        os.getenv("N8N_WEBHOOK_EVIDENCE_UPLOADED_URL") or None
    )
    n8n_human_review_submitted_url: str | None = (
        os.getenv("N8N_WEBHOOK_HUMAN_REVIEW_SUBMITTED_URL") or None
    )
    n8n_case_status_changed_url: str | None = (
        os.getenv("N8N_WEBHOOK_CASE_STATUS_CHANGED_URL") or None
    )
    n8n_deadline_approaching_url: str | None = (
        os.getenv("N8N_WEBHOOK_DEADLINE_APPROACHING_URL") or None
    )
    webhook_timeout_seconds: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))
    webhook_source: str = os.getenv("WEBHOOK_SOURCE", "posh-compliance-system")
    webhook_user_agent: str = os.getenv(
        "WEBHOOK_USER_AGENT", "POSH-Compliance-System/1.0"
    )

    # Deadline monitoring
    deadline_monitor_enabled: bool = _env_bool("DEADLINE_MONITOR_ENABLED", "false")
    deadline_check_interval_seconds: int = int(
        os.getenv("DEADLINE_CHECK_INTERVAL_SECONDS", str(60 * 60))
    )
    deadline_initial_delay_seconds: int = int(
        os.getenv("DEADLINE_INITIAL_DELAY_SECONDS", "5")
    )
    investigation_window_days: int = int(os.getenv("INVESTIGATION_WINDOW_DAYS", "90"))

    # S3 / MinIO settings for evidence files
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "posh-evidence")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")
    s3_presigned_url_expiry: int = int(os.getenv("S3_PRESIGNED_URL_EXPIRY", "3600"))


settings = Settings()
