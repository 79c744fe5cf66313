"""Atomic-unit executor: one transaction per attempt, optimistic retry, post-commit events"""

import logging
from typing import Any, Callable, List, Optional, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from yield_ledger.config import settings
from yield_ledger.domain.events import EventBus, LedgerEvent, event_bus
from yield_ledger.domain.exceptions import ConcurrencyConflict
from yield_ledger.infrastructure.observability.metrics import tx_conflict_counter

T = TypeVar("T")

# PostgreSQL serialization_failure and deadlock_detected
RETRYABLE_PGCODES = {"40001", "40P01"}


class UnitOfWork:
    """Session plus the events and callbacks a unit wants run once it commits"""

    def __init__(self, session: Session):
        self.session = session
        self.events: List[LedgerEvent] = []
        self.callbacks: List[Callable[[], None]] = []

    def emit(self, event_type: str, account_id: str, **payload: Any) -> None:
        self.events.append(LedgerEvent(type=event_type, account_id=account_id, payload=payload))

    def on_commit(self, callback: Callable[[], None]) -> None:
        self.callbacks.append(callback)


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        if getattr(exc.orig, "pgcode", None) in RETRYABLE_PGCODES:
            return True
        return "database is locked" in str(exc.orig)
    return False


def run_atomic(
    session_factory: sessionmaker,
    unit: Callable[[UnitOfWork], T],
    name: str,
    max_attempts: Optional[int] = None,
    bus: Optional[EventBus] = None,
) -> T:
    """
    Run `unit` inside a transaction and commit it.

    The unit must read everything it decides on through the session it is
    given. When a concurrent writer wins the version race the whole unit is
    re-run from scratch with the same inputs; after max_attempts the conflict
    surfaces as ConcurrencyConflict. Any other exception rolls back and
    propagates unchanged.

    Returns:
        Whatever `unit` returned, after commit and event publication
    """
    attempts = max_attempts or settings.tx_max_attempts
    bus = bus or event_bus

    for attempt in range(1, attempts + 1):
        session = session_factory()
        uow = UnitOfWork(session)
        try:
            result = unit(uow)
            session.commit()
        except (StaleDataError, OperationalError) as e:
            session.rollback()
            if not is_retryable(e):
                raise
            tx_conflict_counter.labels(unit=name).inc()
            logging.warning(
                f"Concurrent update in {name}, attempt {attempt}/{attempts}",
                extra={"step": "tx_conflict", "unit": name, "attempt": attempt},
            )
            continue
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

        for callback in uow.callbacks:
            try:
                callback()
            except Exception:
                logging.exception(
                    f"Post-commit callback failed in {name}",
                    extra={"step": "post_commit", "unit": name},
                )
        for event in uow.events:
            bus.publish(event)
        return result

    raise ConcurrencyConflict(name, attempts)
