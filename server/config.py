"""
Server Configuration

Loads configuration from environment variables and provides defaults.
Supports loading from .env file using python-dotenv.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from swipe_engine.models.config import EngineConfig

root_env = Path(__file__).resolve().parent.parent / ".env"
if root_env.exists():
    load_dotenv(root_env)

EMBEDDING_STORES = ("memory", "json", "qdrant")


@dataclass
class ServerConfig:
    """Server configuration."""

    # API Keys
    openai_api_key: Optional[str] = None
    embedding_model: str = "text-embedding-3-small"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Embedding store: "memory" | "json" | "qdrant"
    embedding_store: str = "memory"
    qdrant_url: Optional[str] = None

    # Paths
    cache_dir: Path = Path(__file__).parent.parent / "cache"
    # Optional JSON file merged over the engine defaults
    engine_config_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        base_dir = Path(__file__).parent.parent

        def _path_env(key: str, default: Optional[Path] = None) -> Optional[Path]:
            v = os.getenv(key)
            if not v:
                return default
            p = Path(v)
            return p if p.is_absolute() else (base_dir / p).resolve()

        store = os.getenv("EMBEDDING_STORE", "memory").strip().lower() or "memory"
        if store not in EMBEDDING_STORES:
            store = "memory"

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            embedding_store=store,
            qdrant_url=os.getenv("QDRANT_URL") or None,
            cache_dir=_path_env("CACHE_DIR", base_dir / "cache"),
            engine_config_path=_path_env("ENGINE_CONFIG_PATH"),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate the configuration.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []
        if self.embedding_store == "qdrant" and not self.qdrant_url:
            errors.append("EMBEDDING_STORE=qdrant requires QDRANT_URL")
        if self.engine_config_path and not self.engine_config_path.exists():
            errors.append(f"Engine config file not found: {self.engine_config_path}")
        return len(errors) == 0, errors

    def ensure_directories(self):
        """Create required directories if they don't exist."""
        if self.embedding_store == "json":
            (self.cache_dir / "embeddings").mkdir(parents=True, exist_ok=True)

    def load_engine_config(self) -> EngineConfig:
        """EngineConfig from ENGINE_CONFIG_PATH, or the defaults."""
        if not self.engine_config_path:
            return EngineConfig()
        with open(self.engine_config_path) as f:
            return EngineConfig.from_dict(json.load(f))


# Global config instance
_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
        _config.ensure_directories()
    return _config


def reload_config() -> ServerConfig:
    """Reload configuration from environment."""
    global _config
    _config = None
    return get_config()
