# src/teasr_stage/services/__init__.py
"""Business logic services for the TEASR monetization core."""

from .access_gate import AccessGate, BlurredThumbnailRef, DecryptedMedia
from .allocator import InvestorAllocator, InvestorOutcome
from .envelope import CryptoEnvelope
from .ledger import PaymentLedger, PaymentOutcome
from .settlement import SettlementResult, SettlementSimulator
from .viral_sweep import ViralSweep, ViralSweepWorker

__all__ = [
    "AccessGate",
    "BlurredThumbnailRef",
    "CryptoEnvelope",
    "DecryptedMedia",
    "InvestorAllocator",
    "InvestorOutcome",
    "PaymentLedger",
    "PaymentOutcome",
    "SettlementResult",
    "SettlementSimulator",
    "ViralSweep",
    "ViralSweepWorker",
]
