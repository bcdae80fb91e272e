"""
Client for the REST-enabled SQL and SODA services of an Autonomous Database.

URLs are derived from the SQL Developer Web URL of the database, which has
the form https://<host>/ords/<schema>/_sdw/.
"""

import json
from typing import Any, Dict, Optional

import httpx

from provisioner.core.config import settings
from provisioner.core.exceptions import RestServiceError
from provisioner.core.logging import get_service_logger

logger = get_service_logger("rest_client")

ORDS_MARKER = "/ords/"


def url_prefix_from(sql_dev_web_url: str) -> str:
    """Return the https://<host>/ords/ prefix of a SQL Developer Web URL."""
    index = sql_dev_web_url.find(ORDS_MARKER)
    if index < 0:
        raise ValueError(f"Not an ORDS URL: {sql_dev_web_url}")
    return sql_dev_web_url[: index + len(ORDS_MARKER)]


def user_sql_dev_web_url(admin_url: str, user_name: str) -> str:
    """Derive the per-user SQL Developer Web URL from the admin one."""
    return admin_url.replace("/admin/", f"/{user_name.lower()}/")


class OrdsRestClient:
    """Executes SQL scripts and SODA calls as one database user."""

    def __init__(
        self,
        sql_dev_web_url: str,
        username: str,
        password: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.logger = logger
        self.username = username
        self.url_prefix = url_prefix_from(sql_dev_web_url)
        self._client = httpx.Client(
            auth=(username, password),
            timeout=timeout if timeout is not None else settings.REST_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def schema_path(self) -> str:
        return f"{self.url_prefix}{self.username.lower()}/"

    @property
    def url_sql_service(self) -> str:
        return f"{self.schema_path}_/sql"

    @property
    def url_soda_service(self) -> str:
        return f"{self.schema_path}soda/latest/"

    def sign_in_url(self) -> str:
        return f"{self.url_prefix}sign-in/?username={self.username.upper()}&r=_sdw%2F"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "OrdsRestClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            self.logger.error("REST call failed", method=method, url=url, error=str(e))
            raise RestServiceError(f"{method} {url} failed: {e}", url=url) from e

        if response.status_code >= 400:
            self.logger.error(
                "REST call rejected",
                method=method,
                url=url,
                status_code=response.status_code,
            )
            raise RestServiceError(
                f"{method} {url} returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                url=url,
            )
        return response

    def execute(self, sql: str) -> Dict[str, Any]:
        """
        Run a SQL / PL/SQL script through the REST-enabled SQL service.

        Args:
            sql: Script text, statements separated as in SQL*Plus

        Returns:
            Decoded JSON response

        Raises:
            RestServiceError: HTTP failure or any statement reporting an error
        """
        response = self._send(
            "POST",
            self.url_sql_service,
            content=sql.encode("utf-8"),
            headers={"Content-Type": "application/sql"},
        )
        try:
            payload = response.json()
        except ValueError as e:
            self.logger.error(
                "SQL response is not JSON",
                url=self.url_sql_service,
                status_code=response.status_code,
            )
            raise RestServiceError(
                f"POST {self.url_sql_service} returned a non JSON body: {response.text[:200]}",
                status_code=response.status_code,
                url=self.url_sql_service,
            ) from e

        for item in payload.get("items", []):
            if item.get("errorCode") or item.get("errorMessage"):
                message = item.get("errorMessage") or item.get("errorDetails") or "unknown error"
                self.logger.error(
                    "SQL statement failed",
                    statement_id=item.get("statementId"),
                    error_code=item.get("errorCode"),
                )
                raise RestServiceError(
                    f"Statement {item.get('statementId')} failed: {message}",
                    status_code=response.status_code,
                    url=self.url_sql_service,
                )
        return payload

    def create_collection(self, name: str) -> None:
        """Create a SODA collection, no-op if it already exists."""
        self._send("PUT", f"{self.url_soda_service}{name}")
        self.logger.info("SODA collection ready", collection=name)

    def insert_document(self, collection: str, document: Dict[str, Any]) -> None:
        self._send(
            "POST",
            f"{self.url_soda_service}{collection}",
            content=json.dumps(document).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
