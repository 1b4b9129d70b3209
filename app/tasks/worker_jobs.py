import logging
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy.exc import ProgrammingError
from app.core.clock import utcnow
from app.db.session import SessionLocal
from app.models.booking import BookingGroup
from app.services.booking_service import expire_group

logger = logging.getLogger(__name__)


def sweep_expired_holds(db: Session, now: datetime | None = None, limit: int = 500) -> int:
    """Cancel unpaid groups whose hold has lapsed and release their seats."""
    now = now or utcnow()
    expired = db.query(BookingGroup).filter(
        BookingGroup.status == "PENDING_PAYMENT",
        BookingGroup.hold_expires_at != None,
        BookingGroup.hold_expires_at < now,
    ).with_for_update(skip_locked=True).limit(limit).all()
    n = sum(1 for g in expired if expire_group(db, g, now))
    db.commit()
    return n


def expire_holds(limit: int = 500):
    db: Session = SessionLocal()
    try:
        try:
            n = sweep_expired_holds(db, limit=limit)
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
        if n:
            logger.info("expired %d unpaid booking holds", n)
        return {"expired": n}
    finally:
        db.close()
