"""Wiring of the monetization services into one shared registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teasr_stage.core.settings import Settings
from teasr_stage.services.access_gate import AccessGate
from teasr_stage.services.allocator import InvestorAllocator
from teasr_stage.services.blob_store import BlobStore, LocalBlobStore
from teasr_stage.services.broadcast import Broadcaster, InMemoryBroadcaster, RedisBroadcaster
from teasr_stage.services.envelope import CryptoEnvelope
from teasr_stage.services.ledger import PaymentLedger
from teasr_stage.services.publisher import ContentPublisher
from teasr_stage.services.revenue import PriceOracle, RevenueReporter, StaticPriceOracle
from teasr_stage.services.settlement import SettlementSimulator
from teasr_stage.services.viral_sweep import ViralSweep
from teasr_stage.services.votes import VoteService

logger = logging.getLogger(__name__)


@dataclass
class ServiceRegistry:
    """Every service the transport layer calls into, sharing one broadcaster."""

    broadcaster: Broadcaster
    blob_store: BlobStore
    envelope: CryptoEnvelope
    ledger: PaymentLedger
    allocator: InvestorAllocator
    access_gate: AccessGate
    publisher: ContentPublisher
    votes: VoteService
    revenue: RevenueReporter
    viral_sweep: ViralSweep

    async def close(self) -> None:
        await self.broadcaster.close()


def build_broadcaster(config: Settings) -> Broadcaster:
    """Publish to Redis when a URL is configured, otherwise in-process."""
    if config.redis_url:
        logger.info("Publishing events to Redis channel %s", config.broadcast_channel)
        return RedisBroadcaster.from_url(config.redis_url, config.broadcast_channel)
    return InMemoryBroadcaster()


def build_services(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    broadcaster: Broadcaster | None = None,
    blob_store: BlobStore | None = None,
    oracle: PriceOracle | None = None,
) -> ServiceRegistry:
    """Construct the service graph from settings."""
    broadcaster = broadcaster or build_broadcaster(config)
    blob_store = blob_store or LocalBlobStore(config.blob_storage_dir)
    envelope = CryptoEnvelope(config.secret_key)
    allocator = InvestorAllocator(platform_fee=config.platform_fee_amount)
    simulator = SettlementSimulator(
        platform_fee=config.platform_fee_amount,
        platform_wallet=config.platform_wallet,
        solana_platform_wallet=config.solana_platform_wallet,
    )
    ledger = PaymentLedger(
        session_factory,
        allocator,
        simulator,
        broadcaster,
        platform_fee_currency=config.platform_fee_currency,
        production=config.is_production,
        max_attempts=config.payment_max_attempts,
    )
    return ServiceRegistry(
        broadcaster=broadcaster,
        blob_store=blob_store,
        envelope=envelope,
        ledger=ledger,
        allocator=allocator,
        access_gate=AccessGate(session_factory, ledger, envelope, blob_store),
        publisher=ContentPublisher(session_factory, envelope, blob_store),
        votes=VoteService(session_factory, broadcaster),
        revenue=RevenueReporter(session_factory, oracle or StaticPriceOracle(config.usd_prices)),
        viral_sweep=ViralSweep(
            session_factory, broadcaster, upvote_threshold=config.viral_upvote_threshold
        ),
    )


class _ServiceRegistrySingleton:
    """Singleton wrapper for the application's ServiceRegistry."""

    _instance: ServiceRegistry | None = None

    @classmethod
    def get_instance(cls) -> ServiceRegistry:
        if cls._instance is None:
            from teasr_stage.core.settings import settings
            from teasr_stage.db.session import SessionLocal

            cls._instance = build_services(settings, SessionLocal)
        return cls._instance


def get_services() -> ServiceRegistry:
    """Return the process-wide service registry."""
    return _ServiceRegistrySingleton.get_instance()
