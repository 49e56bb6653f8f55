"""Basic unit tests for settings and logging."""

import logging
from pathlib import Path

import pytest


class TestSettingsInitialization:
    """Test settings initialization and basic operations."""

    def test_app_settings_init(self, settings_file: Path) -> None:
        """Test AppSettings can be initialized on an INI file."""
        from dungeon_fabric.settings import AppSettings, ConfigVersion

        settings_obj = AppSettings(settings_file=settings_file)
        assert settings_obj.version == ConfigVersion.CURRENT.value
        assert settings_obj.is_first_run
        settings_obj.set_first_run_complete()
        assert not settings_obj.is_first_run

    def test_profiles_are_isolated(self, settings_file: Path, tmp_path: Path) -> None:
        """Values stored under one profile are invisible to another."""
        from dungeon_fabric.settings import AppSettings

        AppSettings(settings_file=settings_file).game_path = tmp_path
        other = AppSettings(profile="other", settings_file=settings_file)
        assert other.game_path is None
        assert AppSettings(settings_file=settings_file).game_path == tmp_path

    def test_version_migration(self, settings_file: Path) -> None:
        """Unknown stored versions are stamped with the current one."""
        from dungeon_fabric.settings import AppSettings, ConfigVersion

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.settings.setValue("app/version", "0.9")
        settings_obj.sync()

        migrated = AppSettings(settings_file=settings_file)
        assert migrated.version == ConfigVersion.CURRENT.value
        assert migrated.settings.value("app/migrated_from") == "0.9"

    def test_recent_games_become_absolute(
        self, settings_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Version 1.0 recent games are resolved and deduplicated."""
        from dungeon_fabric.settings import AppSettings, ConfigVersion

        monkeypatch.chdir(tmp_path)
        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.settings.setValue("app/version", "1.0")
        settings_obj.settings.setValue(
            "paths/recent_games", ["games/a", str(tmp_path / "games" / "a")]
        )
        settings_obj.sync()

        migrated = AppSettings(settings_file=settings_file)
        assert migrated.version == ConfigVersion.CURRENT.value
        assert migrated.recent_games == [str((tmp_path / "games" / "a").resolve())]


class TestPathAndLayerSettings:
    """Test path and layer selection settings."""

    def test_recent_games(self, settings_file: Path) -> None:
        """Recent games are deduplicated, newest first, capped at 10."""
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.add_recent_game("/games/one")
        assert settings_obj.recent_games == ["/games/one"]

        for index in range(12):
            settings_obj.add_recent_game(f"/games/{index}")
        settings_obj.add_recent_game("/games/5")

        recent = settings_obj.recent_games
        assert recent[0] == "/games/5"
        assert len(recent) == 10
        assert len(set(recent)) == 10

        settings_obj.clear_recent_games()
        assert settings_obj.recent_games == []

    def test_active_layers(self, settings_file: Path) -> None:
        """Active layers survive a round trip through storage."""
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        assert settings_obj.active_layers == []

        settings_obj.add_layer("mod_a")
        assert settings_obj.active_layers == ["mod_a"]
        settings_obj.add_layer("mod_b")
        settings_obj.add_layer("mod_a")
        assert settings_obj.active_layers == ["mod_a", "mod_b"]
        assert settings_obj.is_layer_active("mod_b")

        settings_obj.remove_layer("mod_a")
        assert settings_obj.active_layers == ["mod_b"]

    def test_always_include_core(self, settings_file: Path) -> None:
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        assert settings_obj.always_include_core is True
        settings_obj.always_include_core = False
        assert AppSettings(settings_file=settings_file).always_include_core is False


class TestCompilerSettings:
    """Test compiler tunables stored in settings."""

    def test_defaults_match_compiler_options(self, settings_file: Path) -> None:
        from dungeon_fabric.dungeon.compiler import CompilerOptions
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        assert settings_obj.compiler.to_options() == CompilerOptions()

    def test_stored_values_reach_options(self, settings_file: Path) -> None:
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.compiler.text_default_width = 1024
        settings_obj.compiler.default_fog_image = "ui/mist.png"

        options = AppSettings(settings_file=settings_file).compiler.to_options()
        assert options.text_default_width == 1024
        assert options.default_fog_image == "ui/mist.png"

    def test_non_positive_values_rejected(self, settings_file: Path) -> None:
        from dungeon_fabric.settings import AppSettings, ConfigError

        settings_obj = AppSettings(settings_file=settings_file)
        with pytest.raises(ConfigError):
            settings_obj.compiler.room_size = 0


class TestSettingsValidation:
    """Test settings validation."""

    def test_missing_game_path_is_a_warning(self, settings_file: Path) -> None:
        from dungeon_fabric.settings import AppSettings

        validation = AppSettings(settings_file=settings_file).validate()
        assert validation.is_valid
        assert "Game path not set" in validation.warnings

    def test_nonexistent_game_path_is_an_error(self, settings_file: Path, tmp_path: Path) -> None:
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.game_path = tmp_path / "missing"
        validation = settings_obj.validate()
        assert not validation.is_valid
        assert validation.errors

    def test_stale_recent_games_are_dropped(self, settings_file: Path, tmp_path: Path) -> None:
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.add_recent_game(tmp_path / "gone")
        settings_obj.add_recent_game(tmp_path)
        settings_obj.validate()
        assert settings_obj.recent_games == [str(tmp_path)]


class TestUtilsLogging:
    """Test logging configuration."""

    def test_logging_setup_with_settings(
        self, settings_file: Path, restore_root_handlers: None
    ) -> None:
        """Test logging setup works with settings."""
        from dungeon_fabric.settings import AppSettings
        from dungeon_fabric.utils.logging_config import setup_logging

        settings_obj = AppSettings(settings_file=settings_file)
        setup_logging(settings=settings_obj)

        assert logging.getLogger("dungeon_fabric").level == logging.DEBUG
        assert logging.getLogger("PIL").level == logging.INFO
        assert any(isinstance(h, logging.StreamHandler) for h in logging.getLogger().handlers)

    def test_file_logging_creates_csv(
        self,
        settings_file: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        restore_root_handlers: None,
    ) -> None:
        """The rotating CSV log lands at the fixed relative path."""
        from dungeon_fabric.settings import AppSettings
        from dungeon_fabric.utils.logging_config import setup_logging

        monkeypatch.chdir(tmp_path)
        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.file_logging = True
        settings_obj.console_logging = False
        setup_logging(settings=settings_obj)

        logging.getLogger("dungeon_fabric.test").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_file = tmp_path / "logs" / "dungeon_fabric.csv"
        assert log_file.exists()
        assert '"hello"' in log_file.read_text(encoding="utf-8")

    def test_file_logging_in_game_folder(
        self, settings_file: Path, tmp_path: Path, restore_root_handlers: None
    ) -> None:
        """With a game folder set, the CSV log is written inside it."""
        from dungeon_fabric.settings import AppSettings
        from dungeon_fabric.utils.logging_config import setup_logging

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.game_path = tmp_path / "game"
        settings_obj.file_logging = True
        settings_obj.console_logging = False
        setup_logging(settings=settings_obj)

        logging.getLogger("dungeon_fabric.test").info("inside")
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_file = tmp_path / "game" / "logs" / "dungeon_fabric.csv"
        assert '"inside"' in log_file.read_text(encoding="utf-8")

    def test_csv_formatter_escapes_quotes(self) -> None:
        from dungeon_fabric.utils.logging_config import CSVFormatter

        record = logging.LogRecord("df", logging.INFO, "f.py", 12, 'say "hi"', None, None)
        line = CSVFormatter(datefmt="%Y-%m-%d").format(record)
        assert line.endswith('"say ""hi"""')
        assert '"12"' in line

    def test_colored_formatter(self) -> None:
        from dungeon_fabric.utils.logging_config import ColoredFormatter

        record = logging.LogRecord("df", logging.INFO, "f.py", 1, "msg", None, None)
        assert "\033[32mINFO\033[0m" in ColoredFormatter("%(levelname)s %(message)s").format(record)


class TestLoggingSettings:
    """Test console level validation and the log file location."""

    def test_console_level_is_normalized(self, settings_file: Path) -> None:
        from dungeon_fabric.settings import AppSettings, ConfigError

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.console_log_level = "warning"
        assert settings_obj.console_log_level == "WARNING"
        with pytest.raises(ConfigError):
            settings_obj.console_log_level = "LOUD"
        assert settings_obj.console_log_level == "WARNING"

    def test_corrupt_stored_level_reads_as_info(self, settings_file: Path) -> None:
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.settings.setValue("logging/console_level", "chatty")
        assert settings_obj.console_log_level == "INFO"

    def test_log_file_follows_game_path(self, settings_file: Path, tmp_path: Path) -> None:
        """The log sits in the game folder unless a path is stored."""
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        assert settings_obj.log_file_path == Path("logs") / "dungeon_fabric.csv"

        settings_obj.game_path = tmp_path / "game"
        assert settings_obj.log_file_path == tmp_path / "game" / "logs" / "dungeon_fabric.csv"

        settings_obj.log_file_path = tmp_path / "elsewhere.csv"
        assert AppSettings(settings_file=settings_file).log_file_path == tmp_path / "elsewhere.csv"

        settings_obj.log_file_path = None
        assert settings_obj.log_file_path == tmp_path / "game" / "logs" / "dungeon_fabric.csv"

    def test_log_path_that_is_a_directory_is_invalid(
        self, settings_file: Path, tmp_path: Path
    ) -> None:
        from dungeon_fabric.settings import AppSettings

        settings_obj = AppSettings(settings_file=settings_file)
        settings_obj.file_logging = True
        settings_obj.log_file_path = tmp_path
        assert not settings_obj.validate().is_valid
