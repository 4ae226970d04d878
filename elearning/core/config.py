from typing import Annotated, List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    # Application Information
    app_name: str = Field(default="E-Learning Platform")
    app_description: str = Field(
        default="Courses, lessons, enrollments, progress tracking, reviews and quizzes"
    )
    app_version: str = Field(default="1.0.0")
    app_url: str = Field(default="http://localhost:8000")
    api_prefix: str = Field(default="/api")
    debug: bool = Field(default=True)
    production: bool = Field(default=False)

    # Database Configuration
    database_url: Optional[str] = Field(default=None)
    db_host: str = Field(default="127.0.0.1")
    db_port: int = Field(default=5432)
    db_database: str = Field(default="elearning")
    db_username: str = Field(default="elearning")
    db_password: str = Field(default="elearning")
    db_echo: bool = Field(default=False)

    # Security Settings
    password_hash_rounds: int = Field(default=12, ge=4, le=31)
    cors_allowed_origins: Annotated[List[str], NoDecode] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    # JWT Configuration
    jwt_secret: str = Field(default="your-secret-key-change-in-production")
    jwt_algorithm: str = Field(default="HS256")
    jwt_user_expiration: int = Field(default=7)
    jwt_refresh_expiration: int = Field(default=30)
    jwt_issuer: str = Field(default="E-Learning Platform")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379")
    redis_enabled: bool = Field(default=False)

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_storage_uri: Optional[str] = Field(default=None)
    default_rate_limit: str = Field(default="20/minute")
    auth_rate_limit: str = Field(default="10 per 15 minutes")

    # Pagination
    default_page_size: int = Field(default=10)
    max_page_size: int = Field(default=100)

    # Admin Defaults
    admin_default_first_name: str = Field(default="Super")
    admin_default_last_name: str = Field(default="Admin")
    admin_default_email: str = Field(default="admin@example.com")
    admin_default_password: str = Field(default="Admin@123")

    # File Uploads
    upload_dir: str = Field(default="storage")
    max_upload_size_mb: int = Field(default=5)
    allowed_image_types: Annotated[List[str], NoDecode] = Field(
        default=["jpg", "jpeg", "png", "gif", "webp"]
    )

    # Certificates
    certificate_base_url: str = Field(default="http://localhost:8000")

    # Scheduler
    scheduler_enabled: bool = Field(default=True)
    enrollment_expiry_check_minutes: int = Field(default=60)

    # ============================
    # Generic comma-separated parser
    # ============================
    @staticmethod
    def _parse_csv(value, default):
        if isinstance(value, str):
            items = [x.strip() for x in value.split(",") if x.strip()]
            return items if items else default
        if isinstance(value, list):
            return value
        return default

    @field_validator("allowed_image_types", mode="before")
    def validate_image_types(cls, v):
        return cls._parse_csv(v, ["jpg", "jpeg", "png", "gif", "webp"])

    @field_validator("cors_allowed_origins", mode="before")
    def validate_cors(cls, v):
        return cls._parse_csv(v, ["http://localhost:3000"])

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return "postgresql+psycopg2://{user}:{password}@{host}:{port}/{database}".format(
            user=self.db_username,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_database,
        )

    @property
    def limiter_storage_uri(self) -> str:
        return self.rate_limit_storage_uri or self.redis_url

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings():
    try:
        settings = Settings()
        print("✅ Settings loaded successfully!")
        return settings
    except ValidationError as e:
        print("❌ Validation Error:", e)
        raise


settings = load_settings()
