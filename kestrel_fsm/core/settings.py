"""kestrel-fsm - Configuration system with Pydantic Settings"""

from __future__ import annotations

from typing import Literal

import pydantic_settings
from pydantic import Field
from pydantic_settings import SettingsConfigDict

__all__ = [
    "FSMSettings",
    "settings",
    "get_settings",
    "reload_settings",
]


class FSMSettings(pydantic_settings.BaseSettings):
    """Engine settings with type-safe validation.

    Values are read from ``KESTREL_FSM_*`` environment variables, e.g.
    ``KESTREL_FSM_GRAPH_RANKDIR=TB``.
    """

    # Logging
    debug: bool = Field(default=False)
    log_level: str = Field(default="WARNING")

    # Graph rendering
    graph_name: str = Field(default="finite_state_machine", min_length=1)
    graph_rankdir: Literal["LR", "TB", "RL", "BT"] = Field(default="LR")
    graph_highlight_color: str = Field(default="lightblue", min_length=1)
    render_dynamic_fallbacks: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="KESTREL_FSM_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = FSMSettings()


def get_settings() -> FSMSettings:
    """Return the process-wide settings instance."""
    return settings


def reload_settings() -> FSMSettings:
    """Re-read settings from the environment and replace the global instance."""
    global settings
    settings = FSMSettings()
    return settings
