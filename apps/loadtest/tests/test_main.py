import json

import pytest

from apps.loadtest import main as cli
from packages.connectors.oauth.authenticator import AuthenticationError

CONFIG = {
    "app": {"base_url": "https://api.example.com/api"},
    "oauth": {"authority": "https://login.example.com", "client_id": "loadtest"},
}


def write_config(tmp_path):
    path = tmp_path / "loadtest.config.json"
    path.write_text(json.dumps(CONFIG))
    return str(path)


def test_missing_configuration_exits_with_2(tmp_path):
    assert cli.main(["--config", str(tmp_path / "missing.json")]) == 2


def test_setup_failure_exits_with_1(monkeypatch, tmp_path):
    async def fail(configuration):
        raise AuthenticationError("invalid_client")

    monkeypatch.setattr(cli, "run", fail)

    assert cli.main(["--config", write_config(tmp_path)]) == 1


def test_completed_run_exits_with_0(monkeypatch, tmp_path):
    seen = []

    async def succeed(configuration):
        seen.append(configuration)

    monkeypatch.setattr(cli, "run", succeed)

    assert cli.main(["--config", write_config(tmp_path), "--log-level", "info"]) == 0
    assert seen[0].app.base_url == "https://api.example.com/api"


def test_unknown_log_level_flag_is_rejected(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", write_config(tmp_path), "--log-level", "verbose"])

    assert excinfo.value.code == 2


def test_unknown_log_level_setting_exits_with_2(monkeypatch, tmp_path):
    monkeypatch.setenv("LOADTEST_LOG_LEVEL", "verbose")

    assert cli.main(["--config", write_config(tmp_path)]) == 2
