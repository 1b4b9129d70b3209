from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy import select
from app.models.holiday import Holiday


def is_operational(db: Session, bus_id: str, on_date: date) -> bool:
    """False when the bus has a Holiday declared for that date.

    Always read from the database; callers re-check at booking time.
    """
    hit = db.execute(
        select(Holiday.id).where(Holiday.bus_id == bus_id, Holiday.date == on_date).limit(1)
    ).first()
    return hit is None


def holiday_bus_ids(db: Session, bus_ids: list[str], on_date: date) -> set[str]:
    if not bus_ids:
        return set()
    rows = db.execute(
        select(Holiday.bus_id).where(Holiday.bus_id.in_(bus_ids), Holiday.date == on_date)
    ).all()
    return {r.bus_id for r in rows}
