# adapt_core/dispatch.py
from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple
import logging

from .effects import NAMESPACES
from .errors import UnknownEffectKey
from .types import AdaptationDecision

log = logging.getLogger(__name__)

EffectCallback = Callable[[str, Dict[str, Any]], None]
RequestCallback = Callable[[Tuple[str, ...], AdaptationDecision], None]


class EffectDispatcher:
    """Fans a decision out to one collaborator list per namespace.

    A collaborator that raises is logged and skipped; the other namespaces
    (and the other collaborators of the same namespace) still get notified.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EffectCallback]] = {ns: [] for ns in NAMESPACES}
        self._request_handlers: List[RequestCallback] = []

    def subscribe(self, namespace: str, callback: EffectCallback) -> None:
        if namespace not in self._subscribers:
            raise UnknownEffectKey(namespace, "*")
        self._subscribers[namespace].append(callback)

    def on_requests(self, callback: RequestCallback) -> None:
        self._request_handlers.append(callback)

    def dispatch(self, decision: AdaptationDecision) -> List[str]:
        """Notify every namespace; return the namespaces whose collaborator failed."""

        failed: List[str] = []
        effects = decision.resulting_effect_set
        for ns in NAMESPACES:
            payload = effects.namespace_dict(ns)
            for cb in self._subscribers[ns]:
                try:
                    cb(ns, dict(payload))
                except Exception:
                    log.warning("collaborator for %s failed", ns, exc_info=True)
                    if ns not in failed:
                        failed.append(ns)
        if decision.requests:
            for handler in self._request_handlers:
                try:
                    handler(decision.requests, decision)
                except Exception:
                    log.warning("request handler failed for %s", ",".join(decision.requests), exc_info=True)
                    if "requests" not in failed:
                        failed.append("requests")
        return failed


__all__ = ["EffectDispatcher"]
