"""
Submodule: a page-specific unit nested inside a module.
"""
import time
import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional
from loguru import logger

from agentlet.core.events.constants import Events
from .base import BaseModule, _elapsed_ms, _invoke


class Submodule(BaseModule):
    """
    Module variant activated exclusively within its parent.

    Adds on-demand execution with a bounded history, and cheap URL
    updates that skip re-initialization while the submodule keeps matching.
    """

    event_prefix = "submodule"

    def __init__(self, config: Optional[Dict[str, Any]] = None, **kwargs: Any):
        super().__init__(config, **kwargs)
        self.parent_module: Optional[str] = self._config.parent_module
        self.last_execution_result: Optional[Dict[str, Any]] = None
        self.execution_history: Deque[Dict[str, Any]] = deque(maxlen=self._config.max_history_size)
        self.performance_metrics.update({
            "execution_time": 0.0,
            "total_executions": 0,
            "successful_executions": 0,
            "failed_executions": 0,
        })

    def get_default_settings(self) -> Dict[str, Any]:
        return {**super().get_default_settings(), "auto_execute": False}

    def _bus_payload(self, event: str, data: Any) -> Dict[str, Any]:
        return {"submodule": self.name, "parent_module": self.parent_module, "event": event, "data": data}

    async def update_url(self, new_url: str) -> None:
        """Handle navigation within the submodule's scope without re-init."""
        self.last_url = self.current_url
        self.current_url = new_url
        try:
            await self.handle_url_update(new_url)
        except Exception as e:
            logger.error(f"URL update failed for submodule {self.name}: {e}")
            self.emit(Events.ERROR, {"phase": "urlUpdate", "error": e, "url": new_url})
            return
        self.emit(Events.URL_UPDATED, {"url": new_url})

    async def handle_url_update(self, new_url: str) -> None:
        """Override to react to URL changes while active."""
        logger.debug(f"Submodule {self.name} URL updated: {new_url}")

    async def execute(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run the submodule's main functionality.

        Args:
            params: Execution parameters

        Returns:
            Execution record with ``success``, ``result`` and ``execution_time``

        Raises:
            Exception: Whatever ``perform_execution`` raised, after recording it
        """
        params = dict(params or {})
        execution_id = f"{self.name}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        start = time.perf_counter()

        self.emit(Events.EXECUTION_STARTED, {"execution_id": execution_id, "params": params})
        self.performance_metrics["total_executions"] += 1

        try:
            await _invoke(self._hooks.activate, {"trigger": "execute", "params": params})
            result = await self.perform_execution(params)
            await _invoke(self._hooks.cleanup, {"trigger": "postExecution", "result": result})
        except Exception as e:
            elapsed = _elapsed_ms(start)
            self.performance_metrics["failed_executions"] += 1
            self.performance_metrics["execution_time"] = elapsed
            self.execution_history.append({
                "id": execution_id,
                "timestamp": time.time(),
                "params": params,
                "success": False,
                "error": str(e),
                "execution_time": elapsed,
            })
            logger.error(f"Execution {execution_id} failed: {e}")
            self.emit(Events.EXECUTION_FAILED, {"execution_id": execution_id, "error": e, "execution_time": elapsed})
            raise

        elapsed = _elapsed_ms(start)
        self.performance_metrics["successful_executions"] += 1
        self.performance_metrics["execution_time"] = elapsed
        record = {
            "id": execution_id,
            "timestamp": time.time(),
            "params": params,
            "result": result,
            "execution_time": elapsed,
            "success": True,
        }
        self.last_execution_result = record
        self.execution_history.append(record)
        self.emit(Events.EXECUTION_COMPLETED, {"execution_id": execution_id, "result": result, "execution_time": elapsed})
        return record

    async def perform_execution(self, params: Dict[str, Any]) -> Any:
        """Override for submodule-specific execution."""
        return {"message": "Default execution completed", "params": params}

    def get_execution_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent executions first."""
        return list(reversed(self.execution_history))[:limit]

    def clear_execution_history(self) -> None:
        self.execution_history.clear()
        self.last_execution_result = None
        self.emit(Events.HISTORY_CLEARED)

    def get_default_template(self) -> str:
        return (
            '<div class="agentlet-submodule-content" data-submodule="{{name}}">'
            '<div class="agentlet-submodule-header">'
            "<h4>{{displayName}}</h4>"
            '<span class="agentlet-submodule-status">{{status}}</span>'
            "</div>"
            '<div class="agentlet-submodule-body">'
            "<p>{{description}}</p>"
            "{{#if lastExecution}}<p><strong>Last execution:</strong> {{lastExecution}}</p>{{/if}}"
            "</div>"
            "</div>"
        )

    def get_template_data(self) -> Dict[str, Any]:
        data = super().get_template_data()
        data["parentModule"] = self.parent_module
        last = self.last_execution_result
        data["lastExecution"] = f"{last['execution_time']:.2f}ms" if last else None
        return data

    def get_metadata(self) -> Dict[str, Any]:
        metadata = super().get_metadata()
        metadata["parent_module"] = self.parent_module
        metadata["execution_history_size"] = len(self.execution_history)
        metadata["has_last_result"] = self.last_execution_result is not None
        return metadata

    def export_config(self) -> Dict[str, Any]:
        config = super().export_config()
        config["parent_module"] = self.parent_module
        return config
