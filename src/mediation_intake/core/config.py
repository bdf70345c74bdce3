"""
Application configuration settings loaded from config.yaml
"""
import os
import yaml
from pathlib import Path
from typing import List, Optional, Dict
from pydantic import BaseModel, field_validator


CONFIG_ENV_VAR = "MEDIATION_INTAKE_CONFIG"


class DatabasePoolConfig(BaseModel):
    """Database connection pool configuration"""
    size: int = 10  # Number of connections to maintain
    max_overflow: int = 20  # Maximum overflow connections
    timeout: int = 30  # Seconds to wait for a connection
    recycle: int = 3600  # Seconds before recycling a connection
    echo: bool = False  # Log SQL queries


class DatabaseConfig(BaseModel):
    """Database configuration"""
    # Full SQLAlchemy URL; when set the postgres parts below are ignored
    # (e.g. "sqlite:///./intake.db" for local development)
    dsn: Optional[str] = None
    server: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    db: Optional[str] = None
    port: str = "5432"
    db_schema: Optional[str] = None  # PostgreSQL schema name
    pool: DatabasePoolConfig = DatabasePoolConfig()

    @property
    def url(self) -> str:
        """Construct database URL"""
        if self.dsn:
            return self.dsn
        return f"postgresql://{self.user}:{self.password}@{self.server}:{self.port}/{self.db}"

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class InsightlyRetryConfig(BaseModel):
    """Retry policy for Insightly requests (429 and network errors)"""
    max_retries: int = 3
    initial_delay: float = 1.0  # seconds
    max_delay: float = 10.0  # seconds
    backoff_multiplier: float = 2.0


class InsightlyConfig(BaseModel):
    """Insightly CRM API configuration"""
    api_url: str = "https://api.na1.insightly.com/v3.1"
    api_key: Optional[str] = None
    web_base_url: str = "https://crm.na1.insightly.com"
    timeout: int = 30
    # Cases live in the mediation Opportunity pipeline
    case_endpoint: str = "Opportunities"
    case_id_field: str = "OPPORTUNITY_ID"
    case_pipeline_id: int = 989108
    case_stage_id: int = 4075519  # "Intakes Completed"
    lead_status_id: Optional[int] = 3380784  # "Not Contacted"
    default_country: str = "United States"
    lead_source_ids: Dict[str, int] = {
        "Web": 3442168,
        "Phone Inquiry": 3442169,
        "Partner Referral": 3442170,
        "Outreach": 3442171,
        "Other": 3442172,
    }
    # Website inquiry Lead Sources
    self_referral_lead_source_id: Optional[int] = 3442168  # "Web"
    restorative_referral_lead_source_id: Optional[int] = 3442170  # "Partner Referral"
    search_page_size: int = 20
    retry: InsightlyRetryConfig = InsightlyRetryConfig()

    @field_validator("api_url", "web_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class SyncConfig(BaseModel):
    """CRM reconciliation settings"""
    lease_seconds: int = 120  # How long a reconciliation attempt holds the record
    notify_on_failure: bool = True


class MondayConfig(BaseModel):
    """Monday.com GraphQL configuration"""
    api_url: str = "https://api.monday.com/v2"
    api_token: Optional[str] = None
    api_version: str = "2023-10"
    board_id: Optional[int] = None
    web_base_url: str = "https://mcrc.monday.com"
    groups: Dict[str, str] = {
        "mediation": "mediation_referrals",
        "facilitation": "facilitation_requests",
        "restorativePractices": "restorative_referrals",
    }
    # Column slug -> column id on the master board
    columns: Dict[str, str] = {
        "status": "status",
        "form_type": "form_type",
        "submission_date": "submission_date",
        "primary_contact": "primary_contact",
        "service_area": "service_area",
        "assignee": "owner",
        "description": "description",
        "raw_payload": "raw_payload",
    }
    default_assignee_id: Optional[int] = None
    timeout: int = 30

    @field_validator("web_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token and self.board_id)


class CalendlyConfig(BaseModel):
    """Calendly OAuth configuration"""
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: Optional[str] = None
    oauth_base_url: str = "https://auth.calendly.com"
    api_base_url: str = "https://api.calendly.com"
    refresh_margin_seconds: int = 300  # Refresh tokens expiring within 5 minutes
    timeout: int = 30


class EmailConfig(BaseModel):
    """Resend email configuration"""
    api_url: str = "https://api.resend.com"
    api_key: Optional[str] = None
    from_address: str = "MCRC Howard <no-reply@mcrchoward.org>"
    staff_recipients: List[str] = []
    timeout: int = 15

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class SecurityConfig(BaseModel):
    """Security configuration"""
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12
    cookie_name: str = "session"
    # Fernet key for integration tokens stored at rest
    token_encryption_key: Optional[str] = None


class Settings(BaseModel):
    """Application settings loaded from config.yaml"""

    # Project settings
    project_name: str = "MCRC Intake API"
    version: str = "1.0.0"
    description: str = "Paper intake digitization and CRM sync for the MCRC staff dashboard"
    api_v1_str: str = "/api/v1"

    # Database settings
    database: DatabaseConfig

    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL"""
        return self.database.url

    # Integrations
    insightly: InsightlyConfig = InsightlyConfig()
    sync: SyncConfig = SyncConfig()
    monday: MondayConfig = MondayConfig()
    calendly: CalendlyConfig = CalendlyConfig()
    email: EmailConfig = EmailConfig()

    # CORS settings
    backend_cors_origins: List[str] = []

    @field_validator("backend_cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        return []

    # Security settings
    security: SecurityConfig

    # Logging
    log_level: str = "INFO"


def _find_config_path() -> str:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path

    # Try current directory first
    current_dir = Path.cwd() / "config.yaml"
    if current_dir.exists():
        return str(current_dir)

    # Try project root (assuming we're in src/mediation_intake/core/)
    project_root = Path(__file__).parent.parent.parent.parent / "config.yaml"
    if project_root.exists():
        return str(project_root)

    raise FileNotFoundError(
        "config.yaml not found. Please create config.yaml in the project root "
        f"or point {CONFIG_ENV_VAR} at one."
    )


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config.yaml file. If None, looks in:
                    1. $MEDIATION_INTAKE_CONFIG
                    2. Current directory
                    3. Project root (src/../config.yaml)

    Returns:
        Settings: Loaded and validated settings
    """
    if config_path is None:
        config_path = _find_config_path()

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file, "r") as f:
        config_data = yaml.safe_load(f)

    if config_data is None:
        raise ValueError("Configuration file is empty or invalid")

    return Settings(**config_data)


# Load settings on module import
settings = load_config()
