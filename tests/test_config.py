from pipeline_topology.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.port == 8000
    assert settings.log_level == "INFO"


def test_env_override(monkeypatch):
    monkeypatch.setenv("PIPELINE_TOPOLOGY_PORT", "9100")
    monkeypatch.setenv("PIPELINE_TOPOLOGY_FETCH_TIMEOUT_S", "5")
    settings = Settings(_env_file=None)
    assert settings.port == 9100
    assert settings.fetch_timeout_s == 5.0
