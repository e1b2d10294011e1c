"""
Tool execution metrics

Keeps a bounded history of tool calls for the monitoring view.
"""

import time
from collections import Counter, deque
from typing import Deque, List, Tuple

from pydantic import BaseModel, Field


class ToolExecutionMetric(BaseModel):
    """One finished tool call"""

    tool_name: str
    server_id: str
    duration: float
    success: bool
    timestamp: float = Field(default_factory=time.time)


class ToolMetricsCollector:
    """Last `max_metrics` tool executions and summary statistics"""

    def __init__(self, max_metrics: int = 500) -> None:
        self._metrics: Deque[ToolExecutionMetric] = deque(maxlen=max_metrics)

    def track(self, metric: ToolExecutionMetric) -> None:
        self._metrics.append(metric)

    @property
    def metrics(self) -> List[ToolExecutionMetric]:
        return list(self._metrics)

    def average_duration(self) -> float:
        if not self._metrics:
            return 0.0
        return sum(metric.duration for metric in self._metrics) / len(self._metrics)

    def success_rate(self) -> float:
        if not self._metrics:
            return 0.0
        successful = sum(1 for metric in self._metrics if metric.success)
        return successful / len(self._metrics)

    def most_used_tools(self, limit: int = 5) -> List[Tuple[str, int]]:
        counts = Counter(metric.tool_name for metric in self._metrics)
        return counts.most_common(limit)

    def clear(self) -> None:
        self._metrics.clear()
