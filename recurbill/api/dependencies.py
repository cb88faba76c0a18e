"""Common dependencies shared by the routers."""
from typing import Annotated, TypeAlias

from fastapi import Depends
from sqlalchemy.orm import Session

from recurbill.db.session import get_db
from recurbill.services.billing import BillingEngine, ChargeLedger, build_billing_engine
from recurbill.services.client_service import ClientService
from recurbill.services.notification.service import NotificationService
from recurbill.services.plan_service import PlanService
from recurbill.services.system_config_service import SystemConfigService
from recurbill.utils.clock import Clock

DbDep: TypeAlias = Annotated[Session, Depends(get_db)]


def get_clock() -> Clock:
    return Clock()


def get_notifier() -> NotificationService:
    return NotificationService()


ClockDep: TypeAlias = Annotated[Clock, Depends(get_clock)]
NotifierDep: TypeAlias = Annotated[NotificationService, Depends(get_notifier)]


def get_billing_engine(db: DbDep, notifier: NotifierDep, clock: ClockDep) -> BillingEngine:
    return build_billing_engine(db, notifier=notifier, clock=clock)


def get_client_service(db: DbDep, notifier: NotifierDep, clock: ClockDep) -> ClientService:
    return ClientService(db, notifier=notifier, clock=clock)


def get_plan_service(db: DbDep) -> PlanService:
    return PlanService(db)


def get_ledger(db: DbDep) -> ChargeLedger:
    return ChargeLedger(db)


def get_config_service(db: DbDep) -> SystemConfigService:
    return SystemConfigService(db)


BillingEngineDep: TypeAlias = Annotated[BillingEngine, Depends(get_billing_engine)]
ClientServiceDep: TypeAlias = Annotated[ClientService, Depends(get_client_service)]
PlanServiceDep: TypeAlias = Annotated[PlanService, Depends(get_plan_service)]
LedgerDep: TypeAlias = Annotated[ChargeLedger, Depends(get_ledger)]
ConfigServiceDep: TypeAlias = Annotated[SystemConfigService, Depends(get_config_service)]
