# app/api/v1/endpoints/internals.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api import deps
from app.background_tasks.booking_tasks import run_booking_sweep
from app.schemas.booking import SweepResult

router = APIRouter(tags=["Internal"])


@router.post("/internal/bookings/sweep", response_model=SweepResult)
def trigger_booking_sweep(
    db: Session = Depends(deps.get_db),
    api_key: str = Depends(deps.get_internal_api_key),
):
    """
    Run the pending-booking sweep now. Used by external cron runners when
    the in-process scheduler is disabled.
    """
    return run_booking_sweep(db)
