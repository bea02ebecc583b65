import json, os, pathlib

ENV_PREFIX = "INTUNEGRAPH_"

def load_appsettings() -> dict:
    p = pathlib.Path(os.environ.get(ENV_PREFIX + "SETTINGS", "config/appsettings.json"))
    if not p.exists():
        return {}
    try:
        text = p.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        data = json.loads(text)
    except (OSError, ValueError):
        # malformed JSON → fall back to defaults
        return {}
    return data if isinstance(data, dict) else {}

def _env(name: str, default=None):
    val = os.environ.get(ENV_PREFIX + name)
    return val if val not in (None, "") else default

def get_http_config():
    cfg = load_appsettings().get("http", {})
    return {
        "timeout_seconds": float(cfg.get("timeout_seconds", 30)),
    }

def get_auth_config():
    cfg = load_appsettings().get("auth", {})
    scopes = cfg.get("scopes", [])
    return {
        "cloud": _env("CLOUD", cfg.get("cloud", "Global")),
        "tenant_id": _env("TENANT_ID", cfg.get("tenant_id", "")),
        "client_id": _env("CLIENT_ID", cfg.get("client_id", "")),
        "mode": _env("AUTH_MODE", cfg.get("mode", "interactive")),
        "scopes": [str(s) for s in scopes] if isinstance(scopes, list) else [],
        # secrets only ever come from the environment
        "client_secret": _env("CLIENT_SECRET", ""),
    }

def get_retry_config():
    cfg = load_appsettings().get("retry", {})
    return {
        "max_retries": int(cfg.get("max_retries", 3)),
        "delay_seconds": float(cfg.get("delay_seconds", 5)),
        "statuses": [int(s) for s in cfg.get("statuses", [503])],
        "backoff": str(cfg.get("backoff", "fixed")),
    }
