"""Tests for the display preferences file store."""
import json

from careplan.services.preferences import DisplayPreferences, FontSize, PreferencesStore, Theme


def test_defaults_when_file_is_missing(tmp_path):
    store = PreferencesStore(str(tmp_path / "settings.json"))
    assert store.current == DisplayPreferences(theme=Theme.SYSTEM, font_size=FontSize.MEDIUM)


def test_save_writes_under_single_key(tmp_path):
    path = tmp_path / "settings.json"
    store = PreferencesStore(str(path))
    store.save(theme=Theme.DARK)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"userSettings": {"theme": "dark", "font_size": "medium"}}


def test_partial_save_keeps_other_setting(tmp_path):
    store = PreferencesStore(str(tmp_path / "settings.json"))
    store.save(font_size=FontSize.LARGE)
    updated = store.save(theme=Theme.LIGHT)
    assert updated.font_size is FontSize.LARGE
    assert updated.theme is Theme.LIGHT


def test_saved_values_survive_restart(tmp_path):
    path = str(tmp_path / "settings.json")
    PreferencesStore(path).save(theme=Theme.DARK, font_size=FontSize.SMALL)
    reloaded = PreferencesStore(path).current
    assert (reloaded.theme, reloaded.font_size) == (Theme.DARK, FontSize.SMALL)


def test_unreadable_file_yields_defaults(tmp_path, caplog):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    store = PreferencesStore(str(path))
    assert store.current == DisplayPreferences()
    assert "Could not read display preferences" in caplog.text


def test_unknown_values_yield_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"userSettings": {"theme": "neon"}}), encoding="utf-8")
    assert PreferencesStore(str(path)).current == DisplayPreferences()
