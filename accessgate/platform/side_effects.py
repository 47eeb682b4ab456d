"""
Non-critical side effects.

Usage increments and audit writes run AFTER the business operation has
succeeded and must never fail or roll it back. Instead of swallowing
exceptions ad hoc at every call site, they are executed through
run_best_effort(), which returns a SideEffectOutcome the caller is allowed
to discard.

CRITICAL: a side effect never commits or rolls back the caller's session.
Its writes go through side_effect_session(), a separate unit of work on the
caller's bind:
- Engine bind (production): own connection and transaction, committed on success
- Connection bind already in a transaction (tests): a SAVEPOINT on that
  connection, released on success and rolled back alone on failure

Usage:
    outcome = run_best_effort("usage.increment", lambda: ledger.increment(...))
    if not outcome.ok:
        ...  # optional: surface a warning header
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@contextmanager
def side_effect_session(db: Session) -> Iterator[Session]:
    """
    Open a short-lived session on the same bind as db.

    Commits when the block exits normally, rolls back (only its own work)
    and re-raises otherwise. db itself is never flushed, committed or
    rolled back.
    """
    session = Session(
        bind=db.get_bind(),
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@dataclass(frozen=True)
class SideEffectOutcome:
    """Result of a best-effort side effect. Safe to ignore."""
    name: str
    ok: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, name: str, value: Any = None) -> "SideEffectOutcome":
        return cls(name=name, ok=True, value=value)

    @classmethod
    def failure(cls, name: str, error: BaseException) -> "SideEffectOutcome":
        return cls(name=name, ok=False, error=f"{type(error).__name__}: {error}")

    @classmethod
    def skipped(cls, name: str, reason: str) -> "SideEffectOutcome":
        return cls(name=name, ok=True, value=None, error=reason)


def run_best_effort(
    name: str,
    effect: Callable[[], Any],
    on_failure: Optional[Callable[[BaseException], None]] = None,
    context: Optional[dict[str, Any]] = None,
) -> SideEffectOutcome:
    """
    Execute a non-critical side effect, never raising to the caller.

    Args:
        name: Effect name used in logs (e.g. "usage.increment")
        effect: Zero-argument callable performing the effect
        on_failure: Optional hook (e.g. fallback logging); its own
            errors are logged and discarded
        context: Extra structured fields for the failure log

    Returns:
        SideEffectOutcome with ok=False and the error text on failure
    """
    try:
        return SideEffectOutcome.success(name, effect())
    except Exception as e:
        if on_failure is not None:
            try:
                on_failure(e)
            except Exception:
                logger.debug("Side effect cleanup failed", extra={"effect": name}, exc_info=True)
        logger.error(
            "Non-critical side effect failed",
            extra={"effect": name, "error": str(e), **(context or {})},
            exc_info=True,
        )
        return SideEffectOutcome.failure(name, e)
