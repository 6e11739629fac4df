"""
Unified configuration management with Pydantic validation.
Loads and validates all environment variables used by the report engine.
"""

from pathlib import Path
from dotenv import load_dotenv
from pydantic import Field, field_validator, ValidationError
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Config(BaseSettings):
    """Application configuration with validation."""

    # ========================
    # Application
    # ========================
    app_title: str = Field(default="Warehouse Safety Audits", alias="APP_TITLE")
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # ========================
    # Logging Configuration
    # ========================
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="detailed", alias="LOG_FORMAT")
    log_to_file: bool = Field(default=False, alias="LOG_TO_FILE")
    log_dir: str = Field(default="logs", alias="LOG_DIR")

    # ========================
    # Photo Evidence Fetching
    # ========================
    image_fetch_timeout: float = Field(default=15.0, alias="IMAGE_FETCH_TIMEOUT")
    image_fetch_retries: int = Field(default=2, alias="IMAGE_FETCH_RETRIES")
    image_fetch_backoff: float = Field(default=0.5, alias="IMAGE_FETCH_BACKOFF")
    # 0 means one worker per photo in the batch
    max_concurrent_fetches: int = Field(default=0, alias="MAX_CONCURRENT_FETCHES")
    max_image_dimension: int = Field(default=2048, alias="MAX_IMAGE_DIMENSION")

    # ========================
    # PDF Layout
    # ========================
    pdf_page_size: str = Field(default="A4", alias="PDF_PAGE_SIZE")
    pdf_margin_mm: float = Field(default=15.0, alias="PDF_MARGIN_MM")
    pdf_photo_width_mm: float = Field(default=70.0, alias="PDF_PHOTO_WIDTH_MM")

    # ========================
    # Workbook Layout (empirically tuned, approximate)
    # ========================
    workbook_chart_width_px: int = Field(default=600, alias="WORKBOOK_CHART_WIDTH_PX")
    workbook_photo_width_px: int = Field(default=200, alias="WORKBOOK_PHOTO_WIDTH_PX")
    workbook_row_height_px: float = Field(default=20.0, alias="WORKBOOK_ROW_HEIGHT_PX")
    workbook_points_per_pixel: float = Field(default=0.75, alias="WORKBOOK_POINTS_PER_PIXEL")
    workbook_pixels_per_width_unit: float = Field(default=7.0, alias="WORKBOOK_PIXELS_PER_WIDTH_UNIT")

    # ========================
    # Word Document Layout
    # ========================
    docx_chart_width_in: float = Field(default=5.625, alias="DOCX_CHART_WIDTH_IN")
    docx_photo_width_in: float = Field(default=2.5, alias="DOCX_PHOTO_WIDTH_IN")

    # ========================
    # Validators
    # ========================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["detailed", "rich"]
        if v.lower() not in valid_formats:
            raise ValueError(f"LOG_FORMAT must be one of {valid_formats}")
        return v.lower()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment."""
        valid_envs = ["development", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of {valid_envs}")
        return v.lower()

    @field_validator("pdf_page_size")
    @classmethod
    def validate_page_size(cls, v: str) -> str:
        """Validate PDF page size."""
        valid_sizes = {"a4": "A4", "letter": "letter"}
        if v.lower() not in valid_sizes:
            raise ValueError(f"PDF_PAGE_SIZE must be one of {list(valid_sizes.values())}")
        return valid_sizes[v.lower()]

    @field_validator(
        "image_fetch_timeout",
        "pdf_photo_width_mm",
        "workbook_chart_width_px",
        "workbook_photo_width_px",
        "workbook_row_height_px",
        "workbook_points_per_pixel",
        "workbook_pixels_per_width_unit",
        "docx_chart_width_in",
        "docx_photo_width_in",
    )
    @classmethod
    def validate_positive(cls, v, info):
        """Layout sizes and timeouts must be positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be greater than 0")
        return v

    @field_validator("image_fetch_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """At least one attempt is always made."""
        if v < 1:
            raise ValueError("IMAGE_FETCH_RETRIES must be at least 1")
        return v

    # ========================
    # Helpers
    # ========================

    def get_log_dir(self) -> Path:
        """Get log directory as Path object."""
        path = Path(self.log_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def get_config() -> Config:
    """
    Load and validate configuration.
    Exits if configuration is invalid.
    """
    try:
        return Config()

    except ValidationError as e:
        print("\n❌ Configuration Error:")
        print("=" * 60)
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            print(f"\n Field: {field}")
            print(f"  Error: {error['msg']}")
            if "input" in error:
                print(f"  Value: {error['input']}")
        print("\n" + "=" * 60)
        print("\nPlease check your .env file and fix the errors above.")
        print("See .env.example for reference.\n")
        raise SystemExit(1)


# Global configuration instance
config = get_config()


# Log file only when file logging is enabled
LOG_FILE = config.get_log_dir() / "reports.log" if config.log_to_file else None
