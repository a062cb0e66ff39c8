import json

from shellchrome.core.config import ShellChromeConfig, config_path, load_config, save_config


def test_defaults_when_file_missing(tmp_path):
    config = load_config(str(tmp_path / "config.json"))

    assert config == ShellChromeConfig()
    assert config.headless is True


def test_save_merges_and_persists(tmp_path):
    path = str(tmp_path / "config.json")
    save_config(path, wait_timeout_ms=5000)

    saved = save_config(path, headless=False)

    assert saved.headless is False
    assert saved.wait_timeout_ms == 5000
    with open(path) as f:
        assert json.load(f)["headless"] is False
    assert load_config(path).headless is False


def test_corrupt_file_yields_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")

    assert load_config(str(path)) == ShellChromeConfig()


def test_unknown_keys_are_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"headless": False, "theme": "dark"}))

    assert load_config(str(path)).headless is False


def test_env_var_locates_config(tmp_path, monkeypatch):
    path = str(tmp_path / "custom.json")
    monkeypatch.setenv("SHELLCHROME_CONFIG", path)

    assert config_path() == path
    assert config_path("explicit.json") == "explicit.json"
