import json
import logging
from typing import Any
from urllib import error, request
from urllib.parse import urlparse


logger = logging.getLogger(__name__)


class SinkError(Exception):
    """Raised when a run record could not be delivered to the results store."""


class ResultsClient:
    def __init__(
        self,
        endpoint_url: str,
        api_key: str,
        table: str = "experiment_results",
        timeout_sec: float = 10.0,
    ) -> None:
        self.endpoint_url = endpoint_url.strip()
        self.api_key = api_key.strip()
        self.table = table
        self.timeout_sec = max(0.5, timeout_sec)
        self.enabled = bool(self.endpoint_url and self.api_key)
        self.last_error: str = ""

    @staticmethod
    def is_valid_endpoint(url: str) -> bool:
        parsed = urlparse((url or "").strip())
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def table_url(self) -> str:
        return f"{self.endpoint_url.rstrip('/')}/rest/v1/{self.table}"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }

    def submit(self, record: dict[str, Any]) -> None:
        if not self.enabled:
            self.last_error = "disabled"
            raise SinkError("results endpoint or api key is not configured")
        if not self.is_valid_endpoint(self.endpoint_url):
            self.last_error = "invalid_url"
            raise SinkError(f"invalid results endpoint: {self.endpoint_url!r}")

        payload = json.dumps(record, ensure_ascii=False).encode("utf-8")
        req = request.Request(
            self.table_url(),
            data=payload,
            headers=self._headers(),
            method="POST",
        )
        try:
            with request.urlopen(req, timeout=self.timeout_sec) as resp:
                status = resp.status
        except error.HTTPError as exc:
            self.last_error = f"http_status_{exc.code}"
            raise SinkError(f"results store rejected the record (HTTP {exc.code})") from exc
        except (error.URLError, TimeoutError, OSError) as exc:
            self.last_error = "connection_error"
            raise SinkError(f"could not reach results store: {exc}") from exc

        if not 200 <= status < 300:
            self.last_error = f"http_status_{status}"
            raise SinkError(f"results store rejected the record (HTTP {status})")
        self.last_error = ""
        logger.info("Run %s delivered to %s", record.get("unique_id"), self.table_url())

    def check_connection(self) -> tuple[bool, str]:
        if not self.enabled:
            self.last_error = "disabled"
            return False, "Results upload is disabled (no endpoint or key)"
        if not self.is_valid_endpoint(self.endpoint_url):
            self.last_error = "invalid_url"
            return False, "Invalid endpoint address"

        req = request.Request(f"{self.table_url()}?limit=0", headers=self._headers(), method="GET")
        try:
            with request.urlopen(req, timeout=self.timeout_sec) as resp:
                if resp.status != 200:
                    self.last_error = "health_status_error"
                    return False, "Results store unavailable"
                self.last_error = ""
                return True, "Connection confirmed"
        except (error.URLError, error.HTTPError, TimeoutError, OSError):
            self.last_error = "connection_error"
            return False, "No connection to the results store"
