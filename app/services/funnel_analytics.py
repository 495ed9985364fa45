"""
Funnel analytics, recomputed from sessions and purchases on every request.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Dict
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AppError
from app.models.funnel import Funnel, FunnelStep
from app.models.funnel_session import FunnelSession, FunnelSessionStatus
from app.services import funnel_definitions, purchase_ledger

logger = logging.getLogger(__name__)


@dataclass
class FunnelTotals:
    funnel: Funnel
    total_sessions: int = 0
    completed_sessions: int = 0
    active_sessions: int = 0
    abandoned_sessions: int = 0
    completion_rate: float = 0.0
    total_revenue: int = 0
    avg_order_value: int = 0


@dataclass
class StepTotals:
    step: FunnelStep
    accepted_count: int = 0
    declined_count: int = 0
    acceptance_rate: float = 0.0


@dataclass
class FunnelReport(FunnelTotals):
    steps: List[StepTotals] = field(default_factory=list)


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part * 100.0 / whole, 2)


def _session_revenue(db: Session, session: FunnelSession) -> int:
    # Older and free-only sessions may not carry total_revenue
    if session.total_revenue and session.total_revenue > 0:
        return session.total_revenue
    return sum(p.amount for p in purchase_ledger.list_purchases_for_session(db, session.id))


def _list_sessions(db: Session, funnel_id: uuid.UUID) -> List[FunnelSession]:
    return db.query(FunnelSession).filter(FunnelSession.funnel_id == funnel_id).all()


def _compute_totals(db: Session, sessions: List[FunnelSession]) -> Dict[str, object]:
    total = len(sessions)
    completed = sum(1 for s in sessions if s.status == FunnelSessionStatus.COMPLETED)
    active = sum(1 for s in sessions if s.status == FunnelSessionStatus.ACTIVE)
    abandoned = sum(1 for s in sessions if s.status == FunnelSessionStatus.ABANDONED)

    revenues = [_session_revenue(db, s) for s in sessions]
    total_revenue = sum(revenues)
    paying_sessions = sum(1 for r in revenues if r > 0)

    return {
        "total_sessions": total,
        "completed_sessions": completed,
        "active_sessions": active,
        "abandoned_sessions": abandoned,
        "completion_rate": _percentage(completed, total),
        "total_revenue": total_revenue,
        "avg_order_value": total_revenue // paying_sessions if paying_sessions else 0,
    }


def get_funnel_analytics(db: Session, funnel: Funnel) -> FunnelTotals:
    """Session counts, completion rate, revenue and average order value for one funnel"""
    sessions = _list_sessions(db, funnel.id)
    return FunnelTotals(funnel=funnel, **_compute_totals(db, sessions))


def get_step_analytics(db: Session, funnel: Funnel) -> List[StepTotals]:
    """Accept/decline counts per step, scanning every session of the funnel"""
    sessions = _list_sessions(db, funnel.id)
    return _compute_step_totals(db, funnel, sessions)


def _compute_step_totals(db: Session, funnel: Funnel, sessions: List[FunnelSession]) -> List[StepTotals]:
    results = []
    for step in funnel_definitions.list_all_steps(db, funnel.id):
        step_key = str(step.id)
        accepted = sum(1 for s in sessions if step_key in (s.accepted_steps or []))
        declined = sum(1 for s in sessions if step_key in (s.declined_steps or []))
        results.append(StepTotals(
            step=step,
            accepted_count=accepted,
            declined_count=declined,
            acceptance_rate=_percentage(accepted, accepted + declined),
        ))
    return results


def get_funnel_report(db: Session, funnel: Funnel) -> FunnelReport:
    """Funnel totals plus per-step breakdown, from a single scan of the sessions"""
    sessions = _list_sessions(db, funnel.id)
    return FunnelReport(
        funnel=funnel,
        steps=_compute_step_totals(db, funnel, sessions),
        **_compute_totals(db, sessions),
    )


def list_funnel_analytics(db: Session) -> List[FunnelTotals]:
    """
    Totals for every funnel.

    A funnel whose aggregation fails is reported with zero counts so that one
    broken funnel does not take the whole view down.
    """
    results = []
    for funnel in db.query(Funnel).order_by(Funnel.created_at.desc()).all():
        try:
            results.append(get_funnel_analytics(db, funnel))
        except (SQLAlchemyError, AppError) as e:
            logger.error(f"[ANALYTICS] Failed to aggregate funnel {funnel.id}: {e}")
            if isinstance(e, SQLAlchemyError):
                db.rollback()
            results.append(FunnelTotals(funnel=funnel))
    return results
