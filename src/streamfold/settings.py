"""Application settings and their local key/value persistence."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

SETTINGS_STORAGE_KEY = "responses-chat-settings"
ACTIVE_THREAD_STORAGE_KEY = "responses-chat-active-thread"

ModelName = Literal["gpt-5-nano", "gpt-5-mini", "gpt-5", "gpt-5.1", "gpt-5.2"]
ReasoningEffort = Literal["none", "minimal", "low", "medium", "high"]
ReasoningSummary = Literal["auto", "concise", "detailed"]
Verbosity = Literal["low", "medium", "high"]
MessageRenderMode = Literal["markdown", "plaintext", "code"]

MODEL_REASONING_EFFORTS: dict[str, list[str]] = {
    "gpt-5-nano": ["low", "medium", "high"],
    "gpt-5-mini": ["low", "medium", "high"],
    "gpt-5": ["low", "medium", "high", "minimal"],
    "gpt-5.1": ["low", "medium", "high", "minimal", "none"],
    "gpt-5.2": ["low", "medium", "high", "minimal", "none"],
}

MAX_MCP_SERVERS = 5


class McpHeader(BaseModel):
    key: str
    value: str


class McpServerConfig(BaseModel):
    """A remote MCP server exposed to the model as a tool."""

    id: str
    name: str
    server_label: str
    server_url: str
    require_approval: Literal["never", "always"] = "never"
    headers: list[McpHeader] = Field(default_factory=list)
    enabled: bool = True


class Settings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    endpoint: str = ""
    api_key: str = ""
    model_name: ModelName = "gpt-5-mini"
    deployment_name: str = ""
    reasoning_effort: ReasoningEffort | None = None
    reasoning_summary: ReasoningSummary | None = "detailed"
    verbosity: Verbosity | None = None
    developer_instructions: str | None = None
    web_search_enabled: bool = False
    code_interpreter_enabled: bool = False
    max_output_tokens_enabled: bool = False
    max_output_tokens: int | None = None
    message_render_mode: MessageRenderMode = "markdown"
    mcp_servers: list[McpServerConfig] = Field(
        default_factory=list, max_length=MAX_MCP_SERVERS,
    )
    no_local_storage: bool = False

    @property
    def is_configured(self) -> bool:
        return self.endpoint.strip() != "" and self.api_key.strip() != ""

    @property
    def deployment(self) -> str:
        return self.deployment_name or self.model_name


DEFAULT_SETTINGS = Settings()


class KeyValueStore:
    """JSON-file backed key/value store.

    Reads never raise: a missing file, unreadable JSON or missing key
    all yield the fallback.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to save {self.path}: {e}")

    def get(self, key: str, fallback: Any = None) -> Any:
        return self._read().get(key, fallback)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def clear(self) -> None:
        self._write({})


class SettingsStore:
    """Loads and saves :class:`Settings` through a :class:`KeyValueStore`."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.settings = self.load()

    def load(self) -> Settings:
        stored = self.store.get(SETTINGS_STORAGE_KEY, {})
        if not isinstance(stored, dict):
            stored = {}
        # stored values over defaults, so new fields pick up their default
        merged = {**DEFAULT_SETTINGS.model_dump(), **stored}
        try:
            settings = Settings.model_validate(merged)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid stored settings: {e}")
            return DEFAULT_SETTINGS.model_copy()
        if settings.no_local_storage:
            return Settings(no_local_storage=True)
        return settings

    def save(self, settings: Settings) -> None:
        self.settings = settings
        if settings.no_local_storage:
            self.store.remove(SETTINGS_STORAGE_KEY)
        else:
            self.store.set(SETTINGS_STORAGE_KEY, settings.model_dump())

    def update(self, **changes) -> Settings:
        settings = Settings.model_validate(
            {**self.settings.model_dump(), **changes}
        )
        self.save(settings)
        return settings

    def reset(self) -> Settings:
        self.save(DEFAULT_SETTINGS.model_copy())
        return self.settings

    def clear_stored_data(self) -> Settings:
        self.store.clear()
        self.settings = DEFAULT_SETTINGS.model_copy()
        return self.settings
