"""
Node execution context.

Every pipeline node takes a `ctx` as its first argument. The context gives
nodes access to secrets and collects the input/output reports each node
emits for debugging.

Secrets default to the process environment; tests and scripts pass an
explicit mapping instead.
"""
import os
from typing import Any, Dict, List, Mapping, Optional

import structlog

logger = structlog.get_logger()


class NodeContext:
    """
    Execution context handed to node functions.

    Usage:
        ctx = NodeContext(secrets={"GOOGLE_API_KEY": "..."})
        result = await enrich_content(ctx, EnrichContentInput(...))
    """

    def __init__(
        self,
        secrets: Optional[Mapping[str, str]] = None,
        job_id: Optional[str] = None,
    ):
        self._secrets = os.environ if secrets is None else secrets
        self.job_id = job_id
        self.inputs: List[Dict[str, Any]] = []
        self.outputs: List[Dict[str, Any]] = []
        self.warnings: List[str] = []
        self._log = logger.bind(job_id=job_id) if job_id else logger

    def get_secret(self, name: str) -> Optional[str]:
        """Return a secret value, or None when unset or blank."""
        value = self._secrets.get(name)
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    def report_input(self, data: Dict[str, Any]) -> None:
        self.inputs.append(data)
        self._log.debug("node_input", **_loggable(data))

    def report_output(self, data: Dict[str, Any]) -> None:
        self.outputs.append(data)
        self._log.debug("node_output", **_loggable(data))

    def warning(self, message: str) -> None:
        self.warnings.append(message)
        self._log.warning("node_warning", message=message)

    @property
    def last_output(self) -> Optional[Dict[str, Any]]:
        return self.outputs[-1] if self.outputs else None


def _loggable(data: Dict[str, Any]) -> Dict[str, Any]:
    # structlog reserves "event" for the event name
    return {("event_" if k == "event" else k): v for k, v in data.items()}
