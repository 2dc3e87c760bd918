"""Tests for JsonSettingsStore."""

import orjson

from camstream.services.settings_store import JsonSettingsStore


def write_settings(path, cameras) -> None:
    path.write_bytes(orjson.dumps({"settings": {"cameras": cameras}}))


class TestJsonSettingsStore:
    async def test_returns_matching_record(self, tmp_path):
        path = tmp_path / "database.json"
        write_settings(
            path,
            [
                {"name": "Garage", "resolution": "320x240"},
                {"name": "Front Door", "resolution": "640x480", "audio": True},
            ],
        )

        setting = await JsonSettingsStore(path).get_camera_setting("Front Door")

        assert setting.resolution == "640x480"
        assert setting.audio is True

    async def test_first_match_wins(self, tmp_path):
        path = tmp_path / "database.json"
        write_settings(
            path,
            [
                {"name": "Garage", "resolution": "320x240"},
                {"name": "Garage", "resolution": "1920x1080"},
            ],
        )

        setting = await JsonSettingsStore(path).get_camera_setting("Garage")

        assert setting.resolution == "320x240"

    async def test_no_record(self, tmp_path):
        path = tmp_path / "database.json"
        write_settings(path, [{"name": "Garage"}])

        assert await JsonSettingsStore(path).get_camera_setting("Front Door") is None

    async def test_missing_file(self, tmp_path):
        assert await JsonSettingsStore(tmp_path / "absent.json").get_camera_setting("Garage") is None

    async def test_invalid_json(self, tmp_path, log_records):
        path = tmp_path / "database.json"
        path.write_text("{not json")

        assert await JsonSettingsStore(path).get_camera_setting("Garage") is None
        assert any(r["level"].name == "ERROR" for r in log_records)

    async def test_unexpected_layout(self, tmp_path):
        path = tmp_path / "database.json"
        path.write_bytes(orjson.dumps({"settings": ["not", "a", "dict"]}))

        assert await JsonSettingsStore(path).get_camera_setting("Garage") is None

    async def test_reads_latest_content(self, tmp_path):
        path = tmp_path / "database.json"
        store = JsonSettingsStore(path)
        write_settings(path, [{"name": "Garage", "resolution": "320x240"}])
        assert (await store.get_camera_setting("Garage")).resolution == "320x240"

        write_settings(path, [{"name": "Garage", "resolution": "800x600"}])

        assert (await store.get_camera_setting("Garage")).resolution == "800x600"
