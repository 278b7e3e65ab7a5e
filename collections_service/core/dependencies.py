"""
Dependency injection for FastAPI application.

The application factory builds one ServiceContainer holding the store,
transports, clock and scheduler; the getters below hand its services to
route handlers.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from collections_service.core.clock import Clock, SystemClock
from collections_service.core.config import Settings, get_settings
from collections_service.services.campaign_metrics import CampaignMetricsAggregator
from collections_service.services.campaign_service import CampaignService
from collections_service.services.customer_service import CustomerService
from collections_service.services.debt_service import DebtService
from collections_service.services.dispatcher import DispatchOrchestrator
from collections_service.services.report_service import ReportService
from collections_service.services.scheduler import ReclassificationScheduler
from collections_service.services.sql_store import SQLAlchemyStore
from collections_service.services.store import CollectionsStore, InMemoryStore
from collections_service.services.template_service import TemplateService
from collections_service.services.transports import ChannelTransports, HttpChannelTransports


@dataclass
class ServiceContainer:
    """Long-lived collaborators shared by every request."""
    settings: Settings
    store: CollectionsStore
    transports: ChannelTransports
    clock: Clock
    scheduler: ReclassificationScheduler
    metrics: CampaignMetricsAggregator
    dispatcher: DispatchOrchestrator
    customers: CustomerService
    debts: DebtService
    templates: TemplateService
    campaigns: CampaignService
    reports: ReportService

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.transports.close()
        await self.store.close()


def create_store(settings: Settings) -> CollectionsStore:
    if settings.store_backend == "sql":
        return SQLAlchemyStore.from_settings(settings)
    return InMemoryStore()


def build_container(
    settings: Optional[Settings] = None,
    store: Optional[CollectionsStore] = None,
    transports: Optional[ChannelTransports] = None,
    clock: Optional[Clock] = None,
) -> ServiceContainer:
    """
    Wire the services together.

    Args:
        settings: Application settings, defaults to the environment
        store: Store to use instead of the configured backend
        transports: Channel transports to use instead of the HTTP gateways
        clock: Clock to use instead of the system clock
    """
    settings = settings or get_settings()
    store = store or create_store(settings)
    transports = transports or HttpChannelTransports(settings)
    clock = clock or SystemClock()

    metrics = CampaignMetricsAggregator(store)
    scheduler = ReclassificationScheduler(
        store,
        clock,
        interval_seconds=settings.reclassification_interval_seconds,
        concurrency=settings.reclassification_concurrency,
        run_on_startup=settings.reclassification_run_on_startup,
    )
    return ServiceContainer(
        settings=settings,
        store=store,
        transports=transports,
        clock=clock,
        scheduler=scheduler,
        metrics=metrics,
        dispatcher=DispatchOrchestrator(store, transports, clock, settings, metrics=metrics),
        customers=CustomerService(store, clock),
        debts=DebtService(store, clock, metrics=metrics),
        templates=TemplateService(store, clock),
        campaigns=CampaignService(store, clock),
        reports=ReportService(store, clock),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_customer_service(request: Request) -> CustomerService:
    return get_container(request).customers


def get_debt_service(request: Request) -> DebtService:
    return get_container(request).debts


def get_template_service(request: Request) -> TemplateService:
    return get_container(request).templates


def get_campaign_service(request: Request) -> CampaignService:
    return get_container(request).campaigns


def get_metrics_aggregator(request: Request) -> CampaignMetricsAggregator:
    return get_container(request).metrics


def get_dispatcher(request: Request) -> DispatchOrchestrator:
    return get_container(request).dispatcher


def get_report_service(request: Request) -> ReportService:
    return get_container(request).reports


def get_scheduler(request: Request) -> ReclassificationScheduler:
    return get_container(request).scheduler
