"""Configuration settings for the application."""
import os
from typing import List, Optional
from functools import lru_cache

# Constants - defined first to avoid circular imports
SALESFORCE_PRODUCTION_URL = "https://login.salesforce.com"
SALESFORCE_SANDBOX_URL = "https://test.salesforce.com"

# Salesforce API endpoint paths (these are constant across all orgs)
SALESFORCE_TOKEN_URL = "/services/oauth2/token"
SALESFORCE_OBJECTS_URL = "/services/data/{version}/sobjects/"
SALESFORCE_DESCRIBE_URL = "/services/data/{version}/sobjects/{object_name}/describe"
SALESFORCE_UI_API_OBJECT_INFO_URL = "/services/data/{version}/ui-api/object-info/{object_name}"

# Public object reference documentation, used as sourceUrl for standard objects
OBJECT_REFERENCE_URL = (
    "https://developer.salesforce.com/docs/atlas.en-us.object_reference.meta/object_reference/"
)

# Store layout
OBJECTS_DIR = "objects"
INDEX_FILE = "index.json"
PROGRESS_FILE = ".describe-progress.json"
INDEX_VERSION = "1.0.0"

# Module tag for objects that are not in the curated documentation
UNKNOWN_MODULE = "N/A"

# Field names containing these markers are custom fields / custom relationships
CUSTOM_FIELD_MARKERS = ("__c", "__r")

# Objects with these suffixes are not worth documenting
UNWANTED_OBJECT_SUFFIXES = ("History", "Event", "Feed", "Share")

# Run status constants
STATUS_STARTING = "starting"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"
STATUS_TERMINATED = "terminated"
STATUS_TERMINATING = "terminating"


def _env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag; anything other than 'true'/'false' keeps the default."""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    return default


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return int(value)


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        """Initialize settings from environment variables."""
        # Application settings
        self.app_name: str = os.getenv("APP_NAME", "Salesforce Object Reference")
        self.debug: bool = os.getenv("DEBUG", "False").lower() == "true"
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")

        # Server settings
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "8000"))
        self.max_log_entries: int = int(os.getenv("MAX_LOG_ENTRIES", "1000"))

        # Salesforce connection
        self.salesforce_api_version: str = os.getenv("SF_API_VERSION", "v60.0")
        self.salesforce_login_url: str = os.getenv("SF_LOGIN_URL", SALESFORCE_PRODUCTION_URL)
        self.salesforce_username: Optional[str] = os.getenv("SF_USERNAME")
        self.salesforce_password: Optional[str] = os.getenv("SF_PASSWORD")
        self.salesforce_security_token: Optional[str] = os.getenv("SF_SECURITY_TOKEN")
        self.salesforce_client_id: Optional[str] = os.getenv("SF_CLIENT_ID")
        self.salesforce_client_secret: Optional[str] = os.getenv("SF_CLIENT_SECRET")
        # A ready access token skips the login round-trip entirely
        self.salesforce_access_token: Optional[str] = os.getenv("SF_ACCESS_TOKEN")
        self.salesforce_instance_url: Optional[str] = os.getenv("SF_INSTANCE_URL")

        # Describe run settings
        self.merge_with_docs: bool = _env_flag("SF_MERGE_WITH_DOCS", False)
        default_output_dir = "doc" if self.merge_with_docs else "schemas"
        self.output_dir: str = os.getenv("SF_OUTPUT_DIR", default_output_dir)
        objects = os.getenv("SF_OBJECTS")
        self.objects: Optional[List[str]] = (
            [name.strip() for name in objects.split(",") if name.strip()] if objects else None
        )
        self.batch_size: int = int(os.getenv("SF_BATCH_SIZE", "10"))
        self.resume: bool = _env_flag("SF_RESUME", True)
        self.start_from_index: Optional[int] = _env_int("SF_START_FROM_INDEX")
        self.skip_custom_objects: bool = _env_flag("SF_SKIP_CUSTOM", True)
        self.rate_limit_pause: float = float(os.getenv("SF_RATE_LIMIT_PAUSE", "1.0"))
        self.checkpoint_every: int = int(os.getenv("SF_CHECKPOINT_EVERY", "10"))
        self.max_workers: int = int(os.getenv("SF_MAX_WORKERS", "5"))

        # Store read by the lookup layer and the web app
        self.doc_dir: str = os.getenv("DOC_DIR", "doc")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
