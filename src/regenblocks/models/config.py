"""Configuration models for regenblocks."""

from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class DelimiterConfig(BaseModel):
    """Marker tokens that open and close named blocks."""

    start: str = Field(default="//+", min_length=1, description="Block start token")
    start_term: str = Field(default="", description="Required suffix after a block start name")
    end: str = Field(default="//-", min_length=1, description="Block end token")
    end_term: str = Field(default="", description="Suffix written after a block end name")

    @model_validator(mode="after")
    def validate_distinct_tokens(self) -> "DelimiterConfig":
        """Start and end tokens must differ, or every end marker would open a block."""
        if self.start == self.end:
            raise ValueError(f"Block start and end tokens must differ (both are '{self.start}')")
        return self

    model_config = {"frozen": True}


class EditorConfig(BaseModel):
    """Settings for a CodeEditor."""

    delimiters: DelimiterConfig = Field(
        default_factory=DelimiterConfig,
        description="Block marker tokens"
    )

    ignore_macros_in_quoted_strings: bool = Field(
        default=True,
        description="Treat '%' inside double-quoted strings literally"
    )

    macros: dict[str, Union[str, list[str]]] = Field(
        default_factory=dict,
        description="User macro values (string or list of strings)"
    )

    debug_call_sites: bool = Field(
        default=False,
        description="Suffix generated code lines with the generator call site"
    )

    @field_validator("macros")
    @classmethod
    def validate_macro_names(cls, v: dict[str, Union[str, list[str]]]) -> dict[str, Union[str, list[str]]]:
        """User macro names must start with an upper-case letter."""
        for name in v:
            if not name or not name[0].isupper():
                raise ValueError(
                    f"Invalid user macro name '{name}'. "
                    f"All user macros must start with upper case letter"
                )
        return v

    @classmethod
    def load(cls, path: Path) -> "EditorConfig":
        """
        Load configuration from YAML file.

        Args:
            path: Path to config.yaml file

        Returns:
            Validated EditorConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        if not path.exists():
            raise FileNotFoundError(
                f"Configuration file not found at {path}\n\n"
                f"Expected format:\n\n"
                f"delimiters:\n"
                f"  start: '//+'\n"
                f"  end: '//-'\n\n"
                f"ignore_macros_in_quoted_strings: true\n\n"
                f"macros:\n"
                f"  Namespace: Acme.Generated\n"
            )

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    model_config = {"frozen": True}
