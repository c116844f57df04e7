"""MySQL diagnostic agent package."""

from .config import AgentConfig, Settings, load_settings

__all__ = ["AgentConfig", "Settings", "load_settings"]
