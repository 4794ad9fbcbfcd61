"""
Runtime settings

Resolved once at process start and passed explicitly to the asset loader,
the assembly pipeline and the web routers.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from kdp_cover.config.sizes import MAX_PAGE_COUNT
from kdp_cover.errors import ConfigurationError


class Settings(BaseModel):
    api_base_url: Optional[str] = None
    proxy_path: str = "/proxy-image"
    color_timeout_s: float = 5.0
    asset_timeout_s: float = 15.0
    assembly_timeout_s: float = 30.0
    assembly_retries: int = 2
    max_page_count: int = MAX_PAGE_COUNT
    history_path: Path = Path("./data/history.json")
    exports_dir: Path = Path("./exports")
    ideogram_api_key: str = ""
    ideogram_api_url: str = "https://api.ideogram.ai/v1/ideogram-v3/generate"

    @property
    def proxy_url(self) -> Optional[str]:
        if not self.api_base_url:
            return None
        return self.api_base_url.rstrip("/") + self.proxy_path


def _env(name: str, default):
    val = os.getenv(name)
    return default if val in (None, "") else val


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read settings from the environment (and an optional .env file)."""
    load_dotenv(env_file)
    defaults = Settings()
    try:
        return Settings(
            api_base_url=_env("KDP_API_BASE_URL", defaults.api_base_url),
            proxy_path=_env("KDP_PROXY_PATH", defaults.proxy_path),
            color_timeout_s=_env("KDP_COLOR_TIMEOUT_S", defaults.color_timeout_s),
            asset_timeout_s=_env("KDP_ASSET_TIMEOUT_S", defaults.asset_timeout_s),
            assembly_timeout_s=_env("KDP_ASSEMBLY_TIMEOUT_S", defaults.assembly_timeout_s),
            assembly_retries=_env("KDP_ASSEMBLY_RETRIES", defaults.assembly_retries),
            max_page_count=_env("KDP_MAX_PAGE_COUNT", defaults.max_page_count),
            history_path=_env("KDP_HISTORY_PATH", defaults.history_path),
            exports_dir=_env("KDP_EXPORTS_DIR", defaults.exports_dir),
            ideogram_api_key=_env("IDEOGRAM_API_KEY", defaults.ideogram_api_key),
            ideogram_api_url=_env("IDEOGRAM_API_URL", defaults.ideogram_api_url),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in environment: {e}") from e
