import json

import pytest

from adhan_settings import ADHAN_SCHEDULED_KEY, ADHAN_SETTINGS_KEY, AdhanSettings, JsonSettingsStore
from notification_channels import AdhanSound
from prayer_times import PrayerName


def test_defaults():
    settings = AdhanSettings()
    assert settings.enabled
    assert settings.selected_sound is AdhanSound.DEFAULT
    assert settings.hijri_offset == 0
    assert all(settings.enabled_prayers[prayer] for prayer in PrayerName)


def test_invalid_values_are_rejected_on_construction():
    with pytest.raises(ValueError):
        AdhanSettings(hijri_offset=2)
    with pytest.raises(ValueError):
        AdhanSettings(volume=1.5)
    with pytest.raises(ValueError):
        AdhanSettings(selected_sound="cairo")  # type: ignore[arg-type]


def test_from_dict_repairs_stored_record():
    settings = AdhanSettings.from_dict(
        {
            "enabled": True,
            "sound": "cairo",
            "hijri_offset": 5,
            "volume": 3,
            "enabled_prayers": {"Fajr": False},
        }
    )
    assert settings.selected_sound is AdhanSound.DEFAULT
    assert settings.hijri_offset == 1
    assert settings.volume == 1.0
    assert not settings.enabled_prayers[PrayerName.FAJR]
    assert settings.enabled_prayers[PrayerName.ISHA]


def test_is_prayer_enabled_respects_master_switch():
    settings = AdhanSettings(enabled=False)
    assert not settings.is_prayer_enabled(PrayerName.DHUHR)
    toggled = AdhanSettings().with_prayer(PrayerName.DHUHR, False)
    assert not toggled.is_prayer_enabled(PrayerName.DHUHR)
    assert toggled.is_prayer_enabled(PrayerName.ASR)


def test_store_round_trips_settings_and_ids(tmp_path):
    store = JsonSettingsStore(tmp_path / "settings.json")
    assert store.load_settings() == AdhanSettings()
    assert store.load_scheduled_ids() == []

    settings = AdhanSettings(selected_sound=AdhanSound.MAKKAH, hijri_offset=-1).with_prayer(PrayerName.ASR, False)
    store.save_settings(settings)
    store.save_scheduled_ids(["a", "b"])

    reloaded = JsonSettingsStore(tmp_path / "settings.json")
    assert reloaded.load_settings() == settings
    assert reloaded.load_scheduled_ids() == ["a", "b"]

    on_disk = json.loads((tmp_path / "settings.json").read_text(encoding="utf-8"))
    assert on_disk[ADHAN_SETTINGS_KEY]["sound"] == "makkah"
    assert on_disk[ADHAN_SCHEDULED_KEY] == ["a", "b"]


def test_store_falls_back_to_defaults_on_corrupt_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonSettingsStore(path)
    assert store.load_settings() == AdhanSettings()
    assert store.load_scheduled_ids() == []

    store.save_scheduled_ids(["x"])
    assert store.load_scheduled_ids() == ["x"]


@pytest.mark.parametrize("content", ["[1, 2, 3]", '"settings"', "42", "null"])
def test_store_ignores_documents_without_top_level_object(tmp_path, content: str):
    path = tmp_path / "settings.json"
    path.write_text(content, encoding="utf-8")
    store = JsonSettingsStore(path)
    assert store.load_settings() == AdhanSettings()
    assert store.load_scheduled_ids() == []

    store.save_scheduled_ids(["x"])
    assert store.load_scheduled_ids() == ["x"]
    assert json.loads(path.read_text(encoding="utf-8")) == {ADHAN_SCHEDULED_KEY: ["x"]}


def test_store_ignores_malformed_scheduled_ids(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({ADHAN_SCHEDULED_KEY: 7}), encoding="utf-8")
    assert JsonSettingsStore(path).load_scheduled_ids() == []
