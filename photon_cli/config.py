import os
import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_POLL_INTERVAL_S = 0.5
DEFAULT_DISPLAY_INTERVAL_S = 0.5
DEFAULT_RETRY_COUNT = 3
DEFAULT_TASK_TIMEOUT_S = 30 * 60


def env_bool(key: str, default: bool=False) -> bool:
    v = os.getenv(key, str(default)).strip().lower()
    return v in ("1", "true", "yes", "on")


class TaskSettings:
    # Polling policy for long-running controller tasks.
    def __init__(self, data: dict = None) -> None:
        data = data or {}
        self.poll_interval = float(data.get("poll_interval", DEFAULT_POLL_INTERVAL_S))
        self.display_interval = float(data.get("display_interval", DEFAULT_DISPLAY_INTERVAL_S))
        self.retry_count = int(data.get("retry_count", DEFAULT_RETRY_COUNT))
        self.timeout = float(data.get("timeout", DEFAULT_TASK_TIMEOUT_S))


class Settings:
    def __init__(self, settings_path: str = "settings.yaml") -> None:
        self.target = os.getenv("PHOTON_TARGET")
        self.token = os.getenv("PHOTON_TOKEN")
        self.ignore_cert = env_bool("PHOTON_IGNORE_CERT", False)
        self.timeout = int(os.getenv("PHOTON_TIMEOUT", "30"))
        self.http_proxy = os.getenv("HTTP_PROXY")
        self.https_proxy = os.getenv("HTTPS_PROXY")
        self.no_proxy = os.getenv("NO_PROXY")

        data = {}
        if settings_path and os.path.exists(settings_path):
            with open(settings_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        self.tenant = data.get("tenant")
        self.project = data.get("project")
        self.tasks = TaskSettings(data.get("tasks"))

    def require_target(self) -> str:
        if not self.target:
            raise ValueError("Specify a Photon Controller endpoint by setting PHOTON_TARGET")
        return self.target

    def proxies(self):
        proxies = {}
        if self.http_proxy:
            proxies["http"] = self.http_proxy
        if self.https_proxy:
            proxies["https"] = self.https_proxy
        if proxies and self.no_proxy:
            proxies["no_proxy"] = self.no_proxy
        return proxies if proxies else None
