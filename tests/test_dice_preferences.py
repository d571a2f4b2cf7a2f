import pytest

from dice_roller.dice import dice_preferences
from dice_roller.helpers.config_helper import ConfigHelper


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.ini"
    original_path = ConfigHelper.get_config_path()

    def write(text):
        path.write_text(text, encoding="utf-8")
        ConfigHelper._config = None
        ConfigHelper.load_config(path)
        return path

    try:
        yield write
    finally:
        ConfigHelper._config = None
        ConfigHelper.load_config(original_path)


def test_roll_settings_read_dice_section(config_file):
    config_file(
        "[Dice]\n"
        "spin_duration_ms = 1500\n"
        "tick_ms = 20\n"
        "spin_decay = 0.98\n"
        "settle_factor = 0.1\n"
        "convergence_tolerance = 0.01\n"
        "history_size = 5\n"
        "default_die = D6\n"
    )

    settings = dice_preferences.get_roll_settings()

    assert settings.spin_duration == pytest.approx(1.5)
    assert settings.tick_ms == 20
    assert settings.spin_decay == pytest.approx(0.98)
    assert settings.settle_factor == pytest.approx(0.1)
    assert settings.convergence_tolerance == pytest.approx(0.01)
    assert settings.history_size == 5
    assert settings.default_die == "d6"


def test_missing_section_uses_defaults(config_file):
    config_file("[Logging]\nenabled = false\n")

    assert dice_preferences.get_roll_settings() == dice_preferences.RollSettings()


def test_invalid_values_fall_back(config_file):
    config_file(
        "[Dice]\n"
        "spin_duration_ms = soon\n"
        "spin_decay = 1.5\n"
        "settle_factor = 0\n"
        "history_size = 0\n"
        "tick_ms = -4\n"
        "default_die = d7\n"
    )

    settings = dice_preferences.get_roll_settings()

    assert settings == dice_preferences.RollSettings()


def test_zero_spin_duration_is_allowed(config_file):
    config_file("[Dice]\nspin_duration_ms = 0\n")

    assert dice_preferences.get_roll_settings().spin_duration == 0.0


def test_config_changes_are_picked_up_without_restart(config_file):
    path = config_file("[Dice]\nhistory_size = 4\n")
    assert dice_preferences.get_roll_settings().history_size == 4

    ConfigHelper.set("Dice", "history_size", 7, file_path=path)

    assert dice_preferences.get_roll_settings().history_size == 7
