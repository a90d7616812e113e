"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class EvosSettings(BaseSettings):
    anthropic_api_key: str = ""
    default_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192
    evolution_temperature: float = 0.1
    workspace_dir: Path = Path(".evos")
    log_level: str = "INFO"

    # Persistence; unset store paths live under workspace_dir
    store_backend: str = "sqlite"  # sqlite|json
    db_path: Path | None = None
    json_store_path: Path | None = None
    store_key: str = "evos-project-files-v2"

    # Bootstrap chain
    compile_delay_ms: int = 50  # lets pending output flush before a blocking pass
    os_entry: str = "/boot/bootloader.py"
    app_entry: str = "/boot/kernel.py"
    boot_critical_prefix: str = "/boot/"
    module_extensions: list[str] = [".py", ".pyw"]

    # Live preview
    preview_entry: str = "/main.py"
    preview_timeout_s: int = 10
    preview_memory_limit_mb: int = 256
    preview_allowed_capabilities: list[str] = [
        "json", "math", "random", "datetime", "textwrap", "string",
        "itertools", "functools", "collections", "re",
    ]

    model_config = {"env_prefix": "EVOS_"}

    @field_validator("module_extensions")
    @classmethod
    def _two_extensions(cls, value: list[str]) -> list[str]:
        # Resolution tries exactly a primary and a secondary extension.
        if len(value) != 2 or not all(ext.startswith(".") for ext in value):
            raise ValueError("module_extensions needs exactly two entries like ['.py', '.pyw']")
        return value

    @model_validator(mode="after")
    def _store_paths_under_workspace(self) -> "EvosSettings":
        if self.db_path is None:
            self.db_path = self.workspace_dir / "evos.db"
        if self.json_store_path is None:
            self.json_store_path = self.workspace_dir / "project.json"
        return self


settings = EvosSettings()
