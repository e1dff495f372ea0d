# Overview: Transaction helpers for ledger mutations; row locking, retry on write conflicts, rollback on failure.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import StorageError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Pallet and Location also carry version_id_col, so a concurrent writer
    still loses with StaleDataError on SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must be safe to re-run: it re-reads
    everything it mutates.

    Any exception rolls the session back so no partial state is left behind.
    Database failures that survive every attempt surface as StorageError.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StorageError(f"write conflict persisted after {attempts} attempts") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(f"storage failure: {exc.__class__.__name__}") from exc
        except Exception:
            db.session.rollback()
            raise

