# Overview: Service-layer helper for retrying database work.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a whole unit of DB work with retry on concurrency-related failures.

    func must perform its own commit; on OperationalError (deadlocks, locks)
    or StaleDataError the session is rolled back and func runs again from
    scratch. Any other exception rolls back and propagates.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
