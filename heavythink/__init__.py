from heavythink.config import HeavyConfig, build_session, load_config
from heavythink.orchestration import OrchestrationResult, Orchestrator
from heavythink.session import ChatSession

__all__ = [
    "HeavyConfig", "build_session", "load_config",
    "OrchestrationResult", "Orchestrator", "ChatSession",
]
