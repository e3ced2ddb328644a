"""
Connection guard run before every operation.
"""

from __future__ import annotations

import logging
from typing import Optional

from mssqlpermissions.domain.errors import ConnectivityError
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken
from mssqlpermissions.infrastructure.sql.database import Database

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 3
RETRY_DELAY = 0.1


def ensure_connection(database: Optional[Database], token: CancelToken) -> None:
    """
    Ping once.

    Raises:
        ConnectivityError: no handle, closed handle or failed ping
    """
    if database is None:
        raise ConnectivityError("database connection is not initialized")
    database.ping(token)


def ensure_connection_with_retry(
    database: Optional[Database],
    token: CancelToken,
    attempts: int = DEFAULT_ATTEMPTS,
) -> None:
    """
    Ping up to ``attempts`` times, sleeping 100 ms x attempt in between.

    The back-off honours the token; the last attempt's error is raised.
    """
    if attempts <= 0:
        attempts = DEFAULT_ATTEMPTS

    for attempt in range(1, attempts + 1):
        try:
            ensure_connection(database, token)
            return
        except ConnectivityError as exc:
            if database is None or attempt == attempts:
                raise
            logger.warning("Ping failed (attempt %d/%d): %s", attempt, attempts, exc.message)
            token.sleep(RETRY_DELAY * attempt)
