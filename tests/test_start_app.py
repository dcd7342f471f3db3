import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import config  # noqa: E402
import start_app  # noqa: E402
from start_app import main  # noqa: E402


def _fake_uvicorn(monkeypatch):
    called = {}

    def fake_uvicorn_run(target, **kwargs):
        called["target"] = target
        called.update(kwargs)

    monkeypatch.setattr(start_app, "uvicorn", type("U", (), {"run": fake_uvicorn_run}))
    monkeypatch.setattr(start_app, "configure_logging", lambda *a, **k: None)
    return called


def test_launches_console_app(monkeypatch):
    called = _fake_uvicorn(monkeypatch)
    main(["--port", "9001"])
    assert called["target"] == "cafe.app.main:app"
    assert called["port"] == 9001


def test_backend_flag_overrides_settings(monkeypatch):
    _fake_uvicorn(monkeypatch)
    monkeypatch.delenv("STORE_BACKEND", raising=False)
    main(["--backend", "sql"])
    assert config.get_settings().store_backend == config.StoreBackend.SQL
    monkeypatch.delenv("STORE_BACKEND", raising=False)
    config.get_settings.cache_clear()
