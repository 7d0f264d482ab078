from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the soil monitor service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_status(self) -> Dict[str, Any]:
        return self._request("GET", "/status")

    def scan(self) -> List[Dict[str, Any]]:
        return self._request("POST", "/scan")

    def connect(self, address: str) -> Dict[str, Any]:
        return self._request("POST", "/connect", json={"address": address})

    def disconnect(self) -> Dict[str, Any]:
        return self._request("POST", "/disconnect")

    def send_command(self, command: str) -> Dict[str, Any]:
        return self._request("POST", "/commands", json={"command": command})

    def get_readings(self, limit: Optional[int] = None) -> Dict[str, Any]:
        params = {"limit": limit} if limit is not None else None
        return self._request("GET", "/readings", params=params)

    def add_reading(self, temperature: float) -> Dict[str, Any]:
        return self._request("POST", "/readings", json={"temperature": temperature})

    def clear_readings(self) -> None:
        self._request("DELETE", "/readings")

    def get_insights(self) -> Dict[str, Any]:
        return self._request("GET", "/insights")

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
