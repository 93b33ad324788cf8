"""Configuration management for schemaforge."""

import json
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeriveConfig(BaseModel):
    """Configuration for schema derivation."""

    strict_references: bool = Field(default=False, description="Raise on references to nominal types that are neither declared nor registered.")
    non_strict_integers: bool = Field(default=False, description="Emit int8/uint8/int16/uint16/uint32/uint64 formats instead of folding them into int32/int64.")
    unsigned_minimum: bool = Field(default=True, description="Add `minimum: 0` to unsigned integer schemas.")
    component_prefix: str = Field(default="#/components/schemas/", description="Prefix used when rendering `$ref` values.")
    generic_separator: str = Field(default="_", min_length=1, description="Separator between a generic type name and its arguments in instantiation names.")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format ('json' or 'console')")
    file: Path | None = Field(default=None, description="Log file path")


class Config(BaseSettings):
    """Main configuration for schemaforge. Loads from environment variables prefixed with SCHEMAFORGE_."""

    model_config = SettingsConfigDict(
        env_prefix='SCHEMAFORGE_',
        env_nested_delimiter='__', # e.g., SCHEMAFORGE_DERIVE__STRICT_REFERENCES
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    derive: DeriveConfig = Field(default_factory=DeriveConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.
        Note: This does not layer with environment variables.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
