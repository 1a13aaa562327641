import os

from replayact.agent.config import load_agent_config


def test_defaults_fill_every_section():
    config = load_agent_config()

    assert config["agent"]["max_iterations"] == 50
    assert config["agent"]["history_size"] == 10
    assert config["agent"]["decision_max_tries"] == 3
    assert config["browser"]["viewport"] == {"width": 1280, "height": 720}
    assert config["backend"]["url"] == ""


def test_file_values_win_over_defaults(tmp_path):
    path = os.path.join(tmp_path, "agent.toml")
    with open(path, "w") as f:
        f.write('[agent]\nmax_iterations = 20\n\n[backend]\nurl = "http://localhost:3000"\n\n[extra]\nnote = "kept"\n')

    config = load_agent_config(config_path=path, inter_action_delay=0)

    assert config["agent"]["max_iterations"] == 20
    assert config["agent"]["inter_action_delay"] == 0
    assert config["agent"]["history_window"] == 5
    assert config["backend"]["url"] == "http://localhost:3000"
    assert config["extra"] == {"note": "kept"}


def test_auth_token_from_environment(monkeypatch):
    monkeypatch.setenv("REPLAYACT_AUTH_TOKEN", "tok")

    assert load_agent_config(config={})["backend"]["auth_token"] == "tok"


def test_missing_or_invalid_file(tmp_path):
    assert load_agent_config(config_path=os.path.join(tmp_path, "missing.toml")) is None

    path = os.path.join(tmp_path, "bad.toml")
    with open(path, "w") as f:
        f.write("[agent\nmax_iterations = ")
    assert load_agent_config(config_path=path) is None
