"""Configuration management for the reimbursement assistant."""
from pathlib import Path

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

from reimburse_assistant.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Centralized configuration for the reimbursement assistant."""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # OCR Configuration
    gemini_api_key: str = Field(default="", description="Gemini API key for invoice recognition")
    use_vertex_ai: bool = Field(default=False, description="Use Vertex AI instead of standard Gemini API")
    google_cloud_project: str = Field(default="not-set", description="Google Cloud project for Vertex AI")
    google_cloud_location: str = Field(default="not-set", description="Google Cloud location for Vertex AI")
    ocr_model: str = Field(default="gemini-3-flash-preview", description="Model for invoice field extraction")

    # Record Store Configuration
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_anon_key: str = Field(default="", description="Supabase anonymous API key")
    records_table: str = Field(default="reimbursement_records", description="Table holding submission records")
    conditional_updates: bool = Field(
        default=False,
        description="Guard paid-status toggles with a compare-and-swap on paidEditCount"
    )

    # Organization Identity
    org_name: str = Field(default="江南大学", description="Registered buyer name invoices must carry")
    org_tax_id: str = Field(default="1210000071780177X1", description="Registered buyer tax id")
    super_admin_id: str = Field(default="6240210040", description="Student id of the super admin")

    # Local Files
    profile_path: Path = Field(
        default=Path.home() / ".reimburse_assistant" / "profile.json",
        description="Where the local user profile is stored"
    )
    export_directory: Path = Field(default=Path("exports"), description="Output directory for exports")
    logs_directory: Path = Field(default=Path("logs"), description="Directory for log files")
    max_upload_size_mb: float = Field(default=20.0, gt=0, description="Largest invoice file accepted")

    @field_validator("use_vertex_ai", "conditional_updates", mode="before")
    @classmethod
    def parse_bool_flag(cls, v):
        """Parse boolean flags from strings."""
        if isinstance(v, str):
            return v == "1" or v.lower() == "true"
        return v

    @field_validator("org_name", "org_tax_id", "super_admin_id")
    @classmethod
    def identity_must_not_be_empty(cls, v):
        """Ensure organization identity values are provided."""
        if not v or v.strip() == "":
            raise ValueError("organization identity settings must not be empty")
        return v.strip()

    def require(self, setting_name: str) -> str:
        """Return a string setting, raising when it is missing."""
        value = getattr(self, setting_name)
        if not value or not str(value).strip():
            raise ConfigurationError(setting_name, "must be set in the environment or .env file")
        return value

    @property
    def genai_client_kwargs(self) -> dict:
        """Get Gemini client configuration."""
        if self.use_vertex_ai:
            return {
                "vertexai": True,
                "project": self.google_cloud_project,
                "location": self.google_cloud_location,
            }
        return {"api_key": self.require("gemini_api_key")}
