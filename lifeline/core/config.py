import enum
import os
from pathlib import Path

from pydantic import ConfigDict, ValidationError
from pydantic_settings import BaseSettings


class ListErrorPolicy(str, enum.Enum):
    """What a list view shows when its fetch fails."""

    SHOW_EMPTY = "show_empty"
    SHOW_ERROR = "show_error"


class Settings(BaseSettings):
    SECRET: str
    DATABASE_URL: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    SUBSCRIPTION_SETUP_TIMEOUT_SECONDS: float = 5.0
    LIST_ERROR_POLICY: ListErrorPolicy = ListErrorPolicy.SHOW_ERROR
    LOCATION_DEBOUNCE_SECONDS: float = 1.0
    ACTIVE_USER_WINDOW_DAYS: int = 30  # Admin dashboard "active users" window

    model_config = ConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @classmethod
    def get_required_fields(cls) -> list[str]:
        """Get all required fields (those without default values)."""
        return [name for name, field in cls.model_fields.items() if field.is_required()]

    def __init__(self, **kwargs):
        try:
            super().__init__(**kwargs)
        except ValidationError as e:
            env_file = Path(".env")
            required_fields = self.get_required_fields()

            missing_fields = []
            for field in required_fields:
                if not os.getenv(field):
                    missing_fields.append(field)

            if missing_fields:
                fields_str = "\n".join(f"- {field}" for field in missing_fields)
                example_env = "\n".join(
                    f"{field}=your_{field.lower()}_here" for field in missing_fields
                )

                if not env_file.exists():
                    error_msg = (
                        f"\n\nError: Missing required environment variables!"
                        f"\nMissing variables: {fields_str}"
                        f"\n\nFor local development, create a .env file with:"
                        f"\n{example_env}"
                    )
                else:
                    error_msg = (
                        f"\n\nError: Missing required environment variables!"
                        f"\nMissing variables: {fields_str}"
                        f"\n\nPlease add these to your .env file or set as environment variables."
                    )

                raise ValueError(error_msg) from e
            else:
                raise


settings = Settings()
