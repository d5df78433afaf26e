"""
Thin JSON client for a Kubernetes-style API server (stdlib urllib).

Reads are retried with exponential backoff when the server answers 5xx or the
connection fails. Writes (POST/PUT/DELETE) get exactly one attempt: whoever
drives the reconciliation re-runs the pass, which re-reads state first.

    client = KubeClient("https://api.cluster:6443", token, retries=3)
    cm = client.get_json("/api/v1/namespaces/ns1/configmaps/cm1")
"""

from __future__ import annotations

import json
import logging
import socket
import ssl
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

USER_AGENT = "isvcsync/KubeClient"
_IDEMPOTENT = frozenset({"GET"})


@dataclass
class HttpError(Exception):
    """Failed call; status 0 means the request never got an HTTP answer."""
    status: int
    url: str
    body: str = ""
    message: str = ""

    @property
    def transient(self) -> bool:
        return self.status == 0 or 500 <= self.status < 600

    def __str__(self) -> str:
        text = f"{self.status or 'transport'} on {self.url}"
        if self.message:
            text += f" ({self.message})"
        if self.body:
            text += f": {self.body[:200]}"
        return text


class KubeClient:
    def __init__(
        self,
        api_url: str,
        token: str,
        *,
        verify_tls: bool = True,
        timeout_sec: int = 30,
        retries: int = 3,
        backoff_base_sec: float = 0.05,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        if not api_url:
            raise ValueError("api_url is required")
        self.api_url = api_url.rstrip("/")
        self.timeout = float(timeout_sec)
        self.retries = max(0, int(retries))
        self.backoff = float(backoff_base_sec)
        self.log = logger or logging.getLogger("isync.http")

        self._headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

        self._ssl_context: Optional[ssl.SSLContext] = None
        if self.api_url.lower().startswith("https"):
            self._ssl_context = ssl.create_default_context()
            if not verify_tls:
                self._ssl_context.check_hostname = False
                self._ssl_context.verify_mode = ssl.CERT_NONE

    def get_json(self, path: str) -> Dict[str, Any]:
        return self.request("GET", path)

    def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", path, payload)

    def put_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", path, payload)

    def delete_json(self, path: str) -> Dict[str, Any]:
        return self.request("DELETE", path)

    def request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send one call (several for retried reads) and decode the JSON answer ({} when empty)."""
        url = path if path.startswith(("http://", "https://")) else f"{self.api_url}/{path.lstrip('/')}"
        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        attempts = 1 + (self.retries if method in _IDEMPOTENT else 0)

        attempt = 0
        while True:
            try:
                status, raw = self._send(method, url, body)
            except HttpError as err:
                attempt += 1
                self.log.warning("%s %s failed (attempt %s/%s): %s", method, path, attempt, attempts, err)
                if not err.transient or attempt >= attempts:
                    raise
                time.sleep(self.backoff * (2 ** (attempt - 1)))
                continue
            self.log.debug("%s %s -> %s", method, path, status)
            return self._decode(url, status, raw)

    def _send(self, method: str, url: str, body: Optional[bytes]) -> Tuple[int, bytes]:
        req = urllib.request.Request(url=url, data=body, headers=self._headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout, context=self._ssl_context) as resp:
                return getattr(resp, "status", 200), resp.read() or b""
        except urllib.error.HTTPError as e:
            text = (e.read() or b"").decode("utf-8", errors="replace")
            raise HttpError(status=int(e.code), url=url, body=text, message=str(e.reason)) from e
        except urllib.error.URLError as e:
            raise HttpError(status=0, url=url, message=str(e.reason)) from e
        except socket.timeout as e:
            raise HttpError(status=0, url=url, message="timed out") from e

    @staticmethod
    def _decode(url: str, status: int, raw: bytes) -> Dict[str, Any]:
        if status == 204 or not raw:
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise HttpError(status=status, url=url, body=raw[:200].decode("utf-8", "replace"), message=str(e)) from e
