# duka/core/transactions.py

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from duka.core.config import settings
from duka.core.exceptions import ConcurrentUpdate, DukaError, TransactionFailure

logger = logging.getLogger("duka")

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}
RETRYABLE_MESSAGES = ("database is locked", "database table is locked", "deadlock")


def is_retryable(exc: OperationalError) -> bool:
    """True for lock, deadlock and serialization errors that can clear on retry."""
    if exc.connection_invalidated:
        return True

    if getattr(exc.orig, "pgcode", None) in RETRYABLE_SQLSTATES:
        return True

    message = str(exc.orig).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGES)


def run_atomic(
    db: Session,
    operation: Callable[[Session], T],
    *,
    description: str = "transaction",
    max_retries: int | None = None,
    backoff: float | None = None,
) -> T:
    """Run ``operation`` as one unit of work and commit it.

    Everything the operation writes is committed together or rolled back
    together. Lock timeouts, deadlocks and lost races are retried with
    exponential backoff; business-rule errors are raised straight away.
    """
    retries = settings.DB_MAX_RETRIES if max_retries is None else max_retries
    delay = settings.DB_RETRY_BACKOFF_SECONDS if backoff is None else backoff

    attempt = 0
    while True:
        try:
            result = operation(db)
            db.commit()
            return result

        except (OperationalError, ConcurrentUpdate) as exc:
            db.rollback()
            if isinstance(exc, OperationalError) and not is_retryable(exc):
                logger.error(f"{description} failed: {exc}")
                raise TransactionFailure(f"Unable to complete {description}") from exc

            attempt += 1
            if attempt > retries:
                logger.error(f"{description} failed after {attempt} attempts: {exc}")
                raise TransactionFailure(
                    f"Unable to complete {description}, please retry"
                ) from exc
            logger.warning(
                f"{description} hit contention (attempt {attempt}/{retries}), retrying"
            )
            time.sleep(delay * (2 ** (attempt - 1)))

        except DukaError:
            db.rollback()
            raise

        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"{description} failed: {exc}")
            raise TransactionFailure(f"Unable to complete {description}") from exc

        except Exception:
            db.rollback()
            raise
