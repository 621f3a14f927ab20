from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from academy.api.deps import verify_cron_secret
from academy.core.database import get_db
from academy.schemas.cron import CronResult, DailyCronResult
from academy.services import cron
from academy.services.gateway import PaymentGateway, get_payment_gateway
from academy.utils.time import utcnow

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.get("/grace-period", response_model=CronResult)
def grace_period(db: Session = Depends(get_db)):
    return cron.run_grace_period(db)


@router.get("/payment-expiry", response_model=CronResult)
def payment_expiry(db: Session = Depends(get_db)):
    return cron.run_payment_expiry(db)


@router.get("/renewal-reminder", response_model=CronResult)
def renewal_reminder(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    return cron.run_renewal_reminder(db, gateway)


@router.get("/meeting-reminder", response_model=CronResult)
def meeting_reminder(db: Session = Depends(get_db)):
    return cron.run_meeting_reminder(db)


@router.get("/subscription-expiry", response_model=CronResult)
def subscription_expiry(db: Session = Depends(get_db)):
    return cron.run_subscription_expiry(db)


@router.get("/daily", response_model=DailyCronResult)
def daily(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    results = cron.run_daily(db, gateway)
    failed = [r.task for r in results if not r.success]
    return DailyCronResult(
        success=not failed,
        message="All daily jobs completed" if not failed else f"Failed: {', '.join(failed)}",
        timestamp=utcnow(),
        results=results,
    )
