# novabuild/lib/sql_runner.py
"""
Executes generated SQL against a project's backend database.

The backend exposes an `exec_sql` RPC function over its REST endpoint; the
service key authorises it.
"""
from typing import Protocol

import aiohttp

from novabuild.core.exceptions import SqlExecutionError
from novabuild.core.logging import log
from novabuild.models.project import BackendConnection


class SqlRunner(Protocol):
    async def execute(self, connection: BackendConnection, sql: str) -> None:
        ...


class RestSqlRunner:
    """Posts SQL to `<url>/rest/v1/rpc/exec_sql`."""

    RPC_PATH = "/rest/v1/rpc/exec_sql"

    def __init__(self, timeout: int = 60):
        self.timeout = timeout

    def _endpoint(self, url: str) -> str:
        base = url.strip().rstrip("/")
        if not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        return f"{base}{self.RPC_PATH}"

    async def execute(self, connection: BackendConnection, sql: str) -> None:
        if not sql or not sql.strip():
            raise SqlExecutionError("No SQL to execute")

        headers = {
            "apikey": connection.key,
            "Authorization": f"Bearer {connection.key}",
            "Content-Type": "application/json",
        }
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self._endpoint(connection.url),
                    json={"query": sql},
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status >= 300:
                        text = await response.text()
                        raise SqlExecutionError(
                            f"SQL execution failed ({response.status}): {text[:200]}",
                            {"status": response.status},
                        )
        except aiohttp.ClientError as e:
            raise SqlExecutionError(f"Could not reach database: {e}")

        log("SQL", f"Executed {len(sql)} chars of SQL")
