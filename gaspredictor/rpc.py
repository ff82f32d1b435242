"""Ethereum JSON-RPC client for the gas predictor."""

import json
import itertools
import threading
import requests
from typing import Any, Optional

from .constants import DEFAULT_HTTP_TIMEOUT_SECS


class RPCError(Exception):
    """Raised when the node answers with a JSON-RPC error object."""
    def __init__(self, method: str, error: Any):
        self.method = method
        self.error = error
        if isinstance(error, dict):
            self.code = error.get("code")
            message = error.get("message", str(error))
        else:
            self.code = None
            message = str(error)
        self.message = f"{method}: {message}"
        super().__init__(self.message)


def to_int(value: Any) -> Optional[int]:
    """Decode a JSON-RPC quantity ("0x1a", 26 or "26")."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = str(value)
    if text.startswith(("0x", "0X")):
        return int(text, 16)
    return int(text)


def to_quantity(value: int) -> str:
    return hex(int(value))


class RPCClient:
    """JSON-RPC client with persistent session."""

    def __init__(self, url: str, timeout: float = DEFAULT_HTTP_TIMEOUT_SECS):
        """
        Initialize RPC client.

        Args:
            url: RPC URL (e.g., "http://127.0.0.1:8545")
            timeout: HTTP timeout in seconds
        """
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers["content-type"] = "application/json"
        self._ids = itertools.count(1)
        # requests.Session is not documented as thread-safe
        self._lock = threading.Lock()

    def call(self, method: str, *params: Any) -> Any:
        """
        Make an RPC call.

        Args:
            method: RPC method name
            *params: RPC method parameters

        Returns:
            RPC result

        Raises:
            RPCError: If the node returns an error object
            requests.RequestException: If HTTP request fails
        """
        with self._lock:
            payload = {
                "jsonrpc": "2.0",
                "id": next(self._ids),
                "method": method,
                "params": list(params)
            }
            response = self.session.post(self.url, data=json.dumps(payload), timeout=self.timeout)
            response.raise_for_status()
            result = response.json()

        if "error" in result and result["error"]:
            raise RPCError(method, result["error"])

        return result.get("result")

    def close(self):
        self.session.close()
