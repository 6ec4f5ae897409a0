import importlib


def test_proxy_timeout_parsing(monkeypatch):
    monkeypatch.setenv("PROXY_TIMEOUT", "12.5")
    import corsproxy.vars as vars_module

    importlib.reload(vars_module)
    try:
        assert vars_module.PROXY_TIMEOUT == 12.5
    finally:
        monkeypatch.delenv("PROXY_TIMEOUT")
        importlib.reload(vars_module)


def test_proxy_timeout_defaults_to_unbounded(monkeypatch):
    monkeypatch.delenv("PROXY_TIMEOUT", raising=False)
    import corsproxy.vars as vars_module

    importlib.reload(vars_module)
    assert vars_module.PROXY_TIMEOUT is None


def test_base_path_trailing_slash_is_stripped(monkeypatch):
    monkeypatch.setenv("PROXY_BASE_PATH", "/fetch/")
    import corsproxy.vars as vars_module

    importlib.reload(vars_module)
    try:
        assert vars_module.PROXY_BASE_PATH == "/fetch"
    finally:
        monkeypatch.delenv("PROXY_BASE_PATH")
        importlib.reload(vars_module)


def test_tls_verification_can_be_disabled(monkeypatch):
    monkeypatch.setenv("PROXY_VERIFY_TLS", "False")
    import corsproxy.vars as vars_module

    importlib.reload(vars_module)
    try:
        assert vars_module.PROXY_VERIFY_TLS is False
    finally:
        monkeypatch.delenv("PROXY_VERIFY_TLS")
        importlib.reload(vars_module)


def test_metrics_port_parsing(monkeypatch):
    monkeypatch.setenv("METRICS_PORT", "9464")
    import corsproxy.vars as vars_module

    importlib.reload(vars_module)
    try:
        assert vars_module.METRICS_PORT == 9464
    finally:
        monkeypatch.delenv("METRICS_PORT")
        importlib.reload(vars_module)


def test_metrics_listener_disabled_by_default(monkeypatch):
    monkeypatch.delenv("METRICS_PORT", raising=False)
    import corsproxy.vars as vars_module

    importlib.reload(vars_module)
    assert vars_module.METRICS_PORT is None
