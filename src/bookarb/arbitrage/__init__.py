"""Cross-venue arbitrage decision pipeline."""

from bookarb.arbitrage.factory import create_orchestrator
from bookarb.arbitrage.orchestrator import ArbitrageOrchestrator, CycleResult, Outcome

__all__ = ["ArbitrageOrchestrator", "CycleResult", "Outcome", "create_orchestrator"]
