"""Tests for configuration loading and application wiring."""

import pytest

from estate_bot.app import EstateBotApp
from estate_bot.config import AppConfig, DataConfig, StorageConfig, load_config

from conftest import PROJECT_ROOT

CONFIG_YAML = """
data_dir: {data_dir}
storage:
  db_path: ${{data_dir}}/bot.db
providers:
  openai:
    api_key: ${{ESTATE_TEST_OPENAI_KEY}}
    default_model: gpt-4o-mini
  gemini:
    api_key: ${{ESTATE_TEST_MISSING_KEY}}
    default_model: gemini-1.5-flash
routing:
  cost_optimization: false
"""


def test_load_config_interpolates(tmp_path, monkeypatch):
    monkeypatch.setenv("ESTATE_TEST_OPENAI_KEY", "sk-test")
    monkeypatch.delenv("ESTATE_TEST_MISSING_KEY", raising=False)
    config_file = tmp_path / "config.yaml"
    config_file.write_text(CONFIG_YAML.format(data_dir=tmp_path / "data"), encoding="utf-8")

    config = load_config(config_file, tmp_path / "missing.env")

    assert config.storage.db_path == f"{tmp_path / 'data'}/bot.db"
    assert config.providers.openai.api_key == "sk-test"
    assert config.providers.gemini.api_key is None
    assert config.routing.cost_optimization is False
    assert config.cascade.high_confidence == 0.85


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml", tmp_path / "nope.env")


def test_example_config_is_valid():
    config = load_config(PROJECT_ROOT / "config.example.yaml", PROJECT_ROOT / "missing.env")
    assert set(config.routing.chains) == {"simple", "property_search", "market_analysis", "general"}


@pytest.fixture
async def app(tmp_path):
    config = AppConfig(
        storage=StorageConfig(db_path=str(tmp_path / "app.db")),
        data=DataConfig(listings_path=str(PROJECT_ROOT / "sample_data" / "listings.yaml")),
    )
    application = EstateBotApp(config)
    await application.start()
    yield application
    await application.stop()


async def test_import_faq(app):
    added = await app.import_faq(PROJECT_ROOT / "sample_data" / "faq.yaml")

    assert added == 4
    entry = await app.faq_repo.find_exact("How do I schedule a showing?")
    assert entry.category == "scheduling"


async def test_app_answers_without_providers(app):
    await app.import_faq(PROJECT_ROOT / "sample_data" / "faq.yaml")

    faq = await app.handler.handle("cli", "What are your office hours?")
    greeting = await app.handler.handle("cli", "Hello!")

    assert faq.source == "faq"
    assert greeting.source == "template"
    assert greeting.text.startswith("Hello there!")
    assert app.router.get_stats()["available_providers"] == []


def test_create_provider_rejects_unknown(tmp_path):
    app = EstateBotApp(AppConfig(storage=StorageConfig(db_path=str(tmp_path / "x.db"))))
    assert app.create_provider("openai").name == "openai"
    with pytest.raises(ValueError):
        app.create_provider("mistral")
