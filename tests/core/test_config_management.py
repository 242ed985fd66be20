# tests/core/test_config_management.py
import json

import pytest

from chat_exporter.core.managers.config_manager import ConfigManager, deep_merge, migrate_export_section
from chat_exporter.core.utils.path_utils import PathUtils

# Een standaard, voorspelbare configuratie voor onze tests
MOCK_SETTINGS_CONTENT = {
    "debug": {
        "level": "WARNING"
    },
    "export": {
        "export_format": "md",
        "include_toc": False,
        "max_embed_image_bytes": 1000,
        "heading_style": "role"
    }
}


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    """
    Een fixture die een geïsoleerde testomgeving opzet voor de ConfigManager:
    - Plaatst een nep 'settings.json' in een tijdelijke map.
    - Monkeypatched PathUtils om naar deze tijdelijke locatie te wijzen.
    - Er is (nog) geen gebruikersbestand.
    """
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(json.dumps(MOCK_SETTINGS_CONTENT))
    user_file = tmp_path / "user" / "settings.json"

    monkeypatch.setattr(PathUtils, "get_default_settings_file", lambda: settings_file)
    monkeypatch.setattr(PathUtils, "get_user_settings_file", lambda: user_file)

    # De singleton kan al geladen zijn; forceer herladen vanuit ons nep-bestand
    manager = ConfigManager()
    manager.reset()
    yield manager, user_file
    monkeypatch.undo()
    manager.reset()


def test_config_manager_load(config_env):
    """Test of de manager de configuratie correct laadt."""
    manager, _ = config_env
    config = manager.get_all()
    assert config["debug"]["level"] == "WARNING"
    assert config["export"]["max_embed_image_bytes"] == 1000


def test_config_manager_get_nested(config_env):
    """Test het ophalen van geneste waarden."""
    manager, _ = config_env
    assert manager.get_nested("export.heading_style") == "role"
    assert manager.get_nested("non.existent.key", "default") == "default"
    assert manager.get_nested("debug.level.too.deep", "x") == "x"


def test_config_manager_set_nested(config_env):
    """Test het aanpassen van waarden in het geheugen, inclusief type-casting."""
    manager, _ = config_env

    manager.set_nested("debug.level", "INFO")
    assert manager.get_nested("debug.level") == "INFO"

    # Een string 'false' moet een echte boolean worden
    manager.set_nested("export.include_toc", "true")
    assert manager.get_nested("export.include_toc") is True
    manager.set_nested("export.include_toc", "false")
    assert manager.get_nested("export.include_toc") is False

    # De originele waarde is een int, dus '20' wordt een int
    manager.set_nested("export.max_embed_image_bytes", "20")
    assert manager.get_nested("export.max_embed_image_bytes") == 20

    # Niet te casten: blijft als string staan
    manager.set_nested("export.max_embed_image_bytes", "veel")
    assert manager.get_nested("export.max_embed_image_bytes") == "veel"

    # Nieuwe sleutels worden gewoon toegevoegd
    assert manager.set_nested("new_feature.enabled", "True")
    assert manager.get_nested("new_feature.enabled") == "True"


def test_config_manager_set_nested_refuses_non_dict(config_env):
    """Test dat een pad door een niet-dict waarde geweigerd wordt."""
    manager, _ = config_env
    assert manager.set_nested("debug.level.sub", "x") is False


def test_config_manager_reset(config_env):
    """Test of de reset-functie de configuratie herlaadt vanaf schijf."""
    manager, _ = config_env
    manager.set_nested("debug.level", "DEBUG")
    manager.reset()
    assert manager.get_nested("debug.level") == "WARNING"


def test_user_settings_are_merged_on_reset(config_env):
    """Test dat een gebruikersbestand over de standaardwaarden heen gelegd wordt."""
    manager, user_file = config_env
    user_file.parent.mkdir()
    user_file.write_text(json.dumps({"export": {"include_toc": True}}))

    manager.reset()
    assert manager.get_nested("export.include_toc") is True
    assert manager.get_nested("export.heading_style") == "role"


def test_load_file_merges_and_migrates(config_env, tmp_path):
    """Test load_file: diep samenvoegen en de migratie van verouderde sleutels."""
    manager, _ = config_env
    extra = tmp_path / "extra.json"
    extra.write_text(json.dumps({"export": {"gemini_attachment_fallback_scan": False, "heading_style": "qa"}}))

    manager.load_file(extra)
    settings = manager.export_settings()
    assert settings.attachment_fallback_scan is False
    assert settings.heading_style == "qa"
    assert settings.max_embed_image_bytes == 1000


def test_load_file_errors(config_env, tmp_path):
    """Test de fouten van load_file bij een ontbrekend of ongeldig bestand."""
    manager, _ = config_env
    with pytest.raises(FileNotFoundError):
        manager.load_file(tmp_path / "bestaat-niet.json")

    broken = tmp_path / "kapot.json"
    broken.write_text("{niet json")
    with pytest.raises(json.JSONDecodeError):
        manager.load_file(broken)


def test_export_settings_snapshot(config_env):
    """Test de omzetting naar ExportSettings, met de debug-vlag uit het logniveau."""
    manager, _ = config_env
    assert manager.export_settings().debug is False
    manager.set_nested("debug.level", "DEBUG")
    settings = manager.export_settings()
    assert settings.debug is True
    assert settings.export_format == "md"
    # Niet opgegeven sleutels houden hun standaardwaarde
    assert settings.block_math_delim == "$$"


def test_merge_helpers():
    """Test de losse hulpfuncties voor samenvoegen en migreren."""
    assert deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"b": 3}, "d": 4}) == {"a": {"b": 3, "c": 2}, "d": 4}
    assert migrate_export_section({"gemini_attachment_fallback_scan": True}) == {
        "gemini_attachment_fallback_scan": True, "attachment_fallback_scan": True,
    }
    assert migrate_export_section({"gemini_attachment_fallback_scan": True, "attachment_fallback_scan": False}) == {
        "gemini_attachment_fallback_scan": True, "attachment_fallback_scan": False,
    }
