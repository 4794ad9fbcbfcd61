from pathlib import Path

import pytest

from kdp_cover.config.settings import Settings, load_settings
from kdp_cover.config.sizes import MAX_PAGE_COUNT, PaperType, trim_recommendation
from kdp_cover.cover.dimensions import BookSpec, calculate_dimensions
from kdp_cover.errors import ConfigurationError


def test_defaults():
    settings = Settings()
    assert settings.max_page_count == MAX_PAGE_COUNT
    assert settings.proxy_url is None


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("KDP_API_BASE_URL", "http://localhost:8000/")
    monkeypatch.setenv("KDP_MAX_PAGE_COUNT", "900")
    monkeypatch.setenv("KDP_ASSEMBLY_RETRIES", "0")
    monkeypatch.setenv("KDP_HISTORY_PATH", str(tmp_path / "h.json"))
    settings = load_settings(str(tmp_path / "missing.env"))
    assert settings.proxy_url == "http://localhost:8000/proxy-image"
    assert settings.max_page_count == 900
    assert settings.assembly_retries == 0
    assert settings.history_path == Path(tmp_path / "h.json")
    assert calculate_dimensions(BookSpec(page_count=2000), settings.max_page_count).page_count == 900


def test_env_file(monkeypatch, tmp_path):
    env = tmp_path / ".env"
    env.write_text("KDP_COLOR_TIMEOUT_S=2.5\n")
    # register the variable so the value loaded from the file is undone afterwards
    monkeypatch.setenv("KDP_COLOR_TIMEOUT_S", "1")
    monkeypatch.delenv("KDP_COLOR_TIMEOUT_S")
    assert load_settings(str(env)).color_timeout_s == 2.5


def test_paper_coercion():
    assert PaperType.coerce(" Cream ") is PaperType.CREAM
    assert PaperType.coerce(None) is PaperType.WHITE


def test_trim_recommendation():
    assert trim_recommendation("6x9").startswith("Most popular")
    assert trim_recommendation("9x12") == "Standard paperback dimensions"


def test_bad_environment_value(monkeypatch):
    monkeypatch.setenv("KDP_MAX_PAGE_COUNT", "lots")
    with pytest.raises(ConfigurationError):
        load_settings()
