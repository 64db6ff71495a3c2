"""Module status propagation.

When an item reaches a terminal state the owning module is told about the
outcome. Handlers are registered per module type at startup; the engine never
touches module schemas directly.
"""

import logging
from typing import Callable, Dict, Optional

import httpx

from approvalflow.core.errors import UnsupportedModuleTypeError
from .states import ApprovalState, ModuleType

logger = logging.getLogger(__name__)

# Handler signature: handler(module_id, outcome) -> None
ModuleHandler = Callable[[str, str], None]

# Status each module records for an outcome
MODULE_STATUS_VOCABULARY: Dict[str, Dict[str, str]] = {
    ModuleType.RISK_ASSESSMENT.value: {
        ApprovalState.APPROVED.value: "approved",
        ApprovalState.REJECTED.value: "rejected",
    },
    ModuleType.SYSTEM_REGISTRATION.value: {
        ApprovalState.APPROVED.value: "active",
        ApprovalState.REJECTED.value: "inactive",
    },
    ModuleType.DOCUMENT.value: {
        ApprovalState.APPROVED.value: "final",
        ApprovalState.REJECTED.value: "rejected",
    },
    ModuleType.TRAINING.value: {
        ApprovalState.APPROVED.value: "active",
        ApprovalState.REJECTED.value: "inactive",
    },
}


def module_status_for(module_type: str, outcome: str) -> str:
    """Module-side status for an outcome; the outcome itself when unmapped."""
    return MODULE_STATUS_VOCABULARY.get(module_type, {}).get(outcome, outcome)


class ModuleStatusRegistry:
    """Maps module types to the handler that applies outcomes to them."""

    def __init__(self):
        self._handlers: Dict[str, ModuleHandler] = {}

    def register(self, module_type: str, handler: ModuleHandler) -> None:
        self._handlers[module_type] = handler
        logger.debug(f"Registered module status handler for {module_type}")

    def __len__(self) -> int:
        return len(self._handlers)

    def apply(self, module_type: str, module_id: str, outcome: str) -> None:
        """
        Propagate an outcome to the owning module.

        Raises:
            UnsupportedModuleTypeError: No handler is registered for the type
        """
        handler = self._handlers.get(module_type)
        if handler is None:
            raise UnsupportedModuleTypeError(module_type)
        handler(module_id, outcome)
        logger.info(f"Applied outcome {outcome} to {module_type}:{module_id}")


class HttpModuleHandler:
    """Posts outcomes to a module's HTTP endpoint."""

    def __init__(self, module_type: str, endpoint: str, timeout: float = 5.0,
                 client: Optional[httpx.Client] = None):
        self.module_type = module_type
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client

    def __call__(self, module_id: str, outcome: str) -> None:
        payload = {
            "module_id": module_id,
            "outcome": outcome,
            "status": module_status_for(self.module_type, outcome),
        }
        if self._client is not None:
            response = self._client.post(self.endpoint, json=payload, timeout=self.timeout)
        else:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.endpoint, json=payload)
        response.raise_for_status()


def build_registry(settings) -> ModuleStatusRegistry:
    """Registry with an HTTP handler for every configured module endpoint."""
    registry = ModuleStatusRegistry()
    for module_type, endpoint in (settings.module_sync_endpoints or {}).items():
        registry.register(
            module_type,
            HttpModuleHandler(module_type, endpoint, timeout=settings.module_sync_timeout),
        )
    if not len(registry):
        logger.info("No module sync endpoints configured; outcomes will not be propagated")
    return registry
