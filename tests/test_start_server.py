import start_server
from app import create_asgi_app


def test_select_port_skips_busy_ports(monkeypatch):
    busy = {5000, 8080}
    monkeypatch.setattr(start_server, 'check_port_available', lambda host, port: port not in busy)
    assert start_server.select_port('127.0.0.1') == 8000


def test_select_port_none_free(monkeypatch):
    monkeypatch.setattr(start_server, 'check_port_available', lambda host, port: False)
    assert start_server.select_port('127.0.0.1', ports=[5000, 5001]) is None


def test_asgi_factory(monkeypatch, tmp_path):
    monkeypatch.setattr('config.Config.DATABASE_PATH', str(tmp_path / 'portal.db'))
    asgi_app = create_asgi_app()
    assert callable(asgi_app)
    assert (tmp_path / 'portal.db').exists()
