"""
Centralized Configuration Management for componentos

Provides pydantic-based configuration with:
- Environment variable loading (.env support)
- Type validation
- Default values

Usage:
    from componentos.core.config import get_config

    config = get_config()
    print(config.log_level)
    print(config.default_permissions())
"""

from typing import TYPE_CHECKING, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from componentos.core.components.models import Permissions


class ComponentOSConfig(BaseSettings):
    """
    Central configuration for componentos

    All settings can be overridden via environment variables with COMPONENTOS_ prefix.
    For example: COMPONENTOS_LOG_LEVEL, COMPONENTOS_MAIN_BRANCH_NAME, etc.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="COMPONENTOS_",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Logging Configuration
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_capture_level: str = Field(
        default="ERROR",
        description="Minimum level captured into the in-memory log store"
    )

    log_store_max_size: int = Field(
        default=5000,
        ge=1,
        description="Maximum number of captured log entries kept in memory"
    )

    # ============================================
    # Version Control Configuration
    # ============================================

    main_branch_name: str = Field(
        default="main",
        description="Name of the default branch created with a component's first version"
    )

    diff_context_lines: int = Field(
        default=3,
        ge=0,
        description="Number of unchanged context lines around each diff hunk"
    )

    create_initial_version: bool = Field(
        default=True,
        description="Record an 'Initial version' when a component registers with source code"
    )

    # ============================================
    # Default Permissions
    # ============================================

    allow_component_creation: bool = Field(default=True)
    allow_component_deletion: bool = Field(default=False)
    allow_style_changes: bool = Field(default=True)
    allow_logic_changes: bool = Field(default=True)
    allow_data_access: bool = Field(default=True)
    allow_network_requests: bool = Field(default=False)

    # ============================================
    # Validators
    # ============================================

    @field_validator("log_level", "log_capture_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(
                f"log level must be one of: {', '.join(valid_levels)}"
            )
        return v.upper()

    @field_validator("main_branch_name")
    @classmethod
    def validate_main_branch_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("main_branch_name cannot be empty")
        return v.strip()

    def default_permissions(self) -> "Permissions":
        """Build the permission record the registry starts with."""
        from componentos.core.components.models import Permissions

        return Permissions(
            allow_component_creation=self.allow_component_creation,
            allow_component_deletion=self.allow_component_deletion,
            allow_style_changes=self.allow_style_changes,
            allow_logic_changes=self.allow_logic_changes,
            allow_data_access=self.allow_data_access,
            allow_network_requests=self.allow_network_requests,
        )


# Cached config instance
_config: Optional[ComponentOSConfig] = None


def get_config() -> ComponentOSConfig:
    """
    Get the cached configuration, loading it from the environment on first use

    Returns:
        ComponentOSConfig instance
    """
    global _config
    if _config is None:
        _config = ComponentOSConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
