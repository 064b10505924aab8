from __future__ import annotations

import json
import os
import shlex
from typing import Any, List, Optional, Set, cast

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENGINE_COMMAND: List[str] = ["python3", "prompt_inference.py"]


def _parse_csv_str(v: str) -> List[str]:
    """Parse a comma-separated string into a list of values, stripping whitespace."""
    return [x.strip() for x in v.split(",") if x.strip()]


def _normalise_extensions(values: Any) -> Set[str]:
    return {str(ext).strip().lower().lstrip(".") for ext in values if str(ext).strip()}


class Settings(BaseSettings):
    """
    Orchestrator configuration settings, loaded from environment variables.
    """

    debug: bool = False
    json_logs: bool = False

    # External inference engine
    engine_command: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ENGINE_COMMAND)
    )
    engine_verbose: bool = False
    batch_fallback_sequential: bool = True

    # Fallbacks, pydantic will look for these in .env first
    supported_extensions_raw: Optional[str] = "txt,md,jpg,jpeg,png,webp"
    supported_extensions: Set[str] = set()

    search_min_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    alert_threshold: float = Field(default=0.8, ge=0.0, le=1.0)

    # Directory watching
    debounce_seconds: float = Field(default=2.0, gt=0.0)
    watch_recursive: bool = True
    syslog_address: Optional[str] = "/dev/log"

    # Default output locations used by the CLI
    results_dir: str = "./results"
    batch_results_dir: str = "./batch_results"
    search_report_path: str = "./ai_content_report.txt"
    benchmark_dir: str = "./test_samples"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter=None,
        # Disable automatic JSON parsing globally; the field validators coerce values.
        enable_decoding=False,
    )

    @model_validator(mode="after")
    def parse_settings(self) -> "Settings":
        """Derive the extension allow-list from the raw string when unset."""
        # An explicit SUPPORTED_EXTENSIONS (even an empty one) wins over the raw
        # fallback; the raw string only fills in when nothing was provided.
        if os.getenv("SUPPORTED_EXTENSIONS") is None and not self.supported_extensions:
            if self.supported_extensions_raw is None:
                self.supported_extensions = set()
            else:
                self.supported_extensions = _normalise_extensions(
                    _parse_csv_str(self.supported_extensions_raw)
                )
        return self

    @field_validator("engine_command", mode="before")
    @classmethod
    def _coerce_engine_command(cls, v: Any) -> List[str]:
        """Accept a JSON array or a shell-style command line."""

        if v is None or v == "":
            return list(DEFAULT_ENGINE_COMMAND)

        if isinstance(v, str):
            stripped_v = v.strip()
            if stripped_v.startswith("[") and stripped_v.endswith("]"):
                try:
                    loaded_json = json.loads(stripped_v)
                    if isinstance(loaded_json, list):
                        return [str(x) for x in loaded_json if str(x).strip()]
                except json.JSONDecodeError:
                    pass  # Fall through to shell-style splitting
            return shlex.split(stripped_v)

        if isinstance(v, (list, tuple)):
            return [str(x) for x in v if str(x).strip()]

        return cast(List[str], v)

    @field_validator("engine_command")
    @classmethod
    def _require_engine_command(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("ENGINE_COMMAND must name an executable")
        return v

    @field_validator("supported_extensions", mode="before")
    @classmethod
    def _coerce_supported_extensions(cls, v: Any) -> Set[str]:
        """Convert comma or JSON strings into a set[str]."""

        if v is None or v == "":
            return set()

        if isinstance(v, str):
            if v.strip().startswith("["):
                try:
                    parsed: list[str] = json.loads(v)
                    return _normalise_extensions(parsed)
                except json.JSONDecodeError:
                    pass  # Fall through for malformed JSON
            return _normalise_extensions(v.split(","))
        if isinstance(v, (list, set, tuple)):
            return _normalise_extensions(v)
        return cast(Set[str], v)

    @field_validator("syslog_address", mode="before")
    @classmethod
    def _blank_syslog_disables(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return cast(Optional[str], v)

    def is_extension_allowed(self, extension: str) -> bool:
        """
        Check if file extension is in the supported allow-list.

        Args:
            extension: The file extension to check (with or without leading dot)

        Returns:
            True if extension is supported, False otherwise
        """
        if not extension:
            return False

        clean_ext = extension.lower().lstrip(".")
        return clean_ext in self.supported_extensions


# Public accessor with manual caching; tests get a fresh instance
_CACHED_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:  # noqa: D401 – accessor helper
    """Return a **singleton** Settings instance unless running under pytest.

    Tests expect a **fresh** instance every time ``get_settings`` is invoked
    while ``PYTEST_CURRENT_TEST`` is present in the environment, so that
    ``monkeypatch.setenv`` takes effect without clearing any cache.
    """

    global _CACHED_SETTINGS  # noqa: PLW0603 – module-level singleton

    if "PYTEST_CURRENT_TEST" in os.environ:
        return Settings()

    if _CACHED_SETTINGS is None:
        _CACHED_SETTINGS = Settings()

    return _CACHED_SETTINGS


def _clear_settings_cache() -> None:  # noqa: D401 – helper for tests
    """Clear the internal Settings singleton (used by unit-tests)."""

    global _CACHED_SETTINGS
    _CACHED_SETTINGS = None


get_settings.cache_clear = _clear_settings_cache  # type: ignore[attr-defined]
