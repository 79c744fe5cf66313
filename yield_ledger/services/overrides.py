"""Audited admin overrides: actor and reason are mandatory, every use is recorded"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from yield_ledger.domain.exceptions import ValidationError
from yield_ledger.infrastructure.database.models import AdminOverride
from yield_ledger.infrastructure.database.repositories import OverrideRepository
from yield_ledger.infrastructure.database.unit_of_work import UnitOfWork
from yield_ledger.infrastructure.observability.logging import log_override


def require_override(actor: Optional[str], reason: Optional[str], action: str) -> Tuple[str, str]:
    actor = (actor or "").strip()
    reason = (reason or "").strip()
    if not actor:
        raise ValidationError(f"{action} requires an admin actor")
    if not reason:
        raise ValidationError(f"{action} requires a reason", action=action)
    return actor, reason


def record_override(
    uow: UnitOfWork,
    actor: str,
    action: str,
    target_type: str,
    target_id: Optional[str],
    reason: str,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Write the trail row in the same unit as the change; log once it commits"""
    OverrideRepository(uow.session).record(actor, action, target_type, target_id, reason, details)
    uow.on_commit(lambda: log_override(actor, action, target_type, target_id, reason))


def override_history(session_factory: sessionmaker, target_id: str) -> List[AdminOverride]:
    with session_factory() as db:
        return OverrideRepository(db).for_target(target_id)
