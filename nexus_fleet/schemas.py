"""Machine-readable output models.

These Pydantic models define what the CLI prints with ``--json``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from nexus_fleet.lifecycle import BatchTeardownResult, NodeInfo, TeardownResult
from nexus_fleet.providers.base import NodeState, StepOutcome
from nexus_fleet.status import NodeStatus, StatusReport


class ResourceUsageModel(BaseModel):
    cpu_percent: float | None = None
    memory_used: int | None = None  # bytes


class NodeStatusModel(BaseModel):
    index: int
    node_id: str
    container_name: str
    state: NodeState
    usage: ResourceUsageModel | None = None
    error: str | None = None

    @classmethod
    def from_status(cls, status: NodeStatus) -> "NodeStatusModel":
        usage = None
        if status.usage.available:
            usage = ResourceUsageModel(
                cpu_percent=status.usage.cpu_percent,
                memory_used=status.usage.memory_used,
            )
        return cls(
            index=status.index,
            node_id=status.node_id,
            container_name=status.container_name,
            state=status.state,
            usage=usage,
            error=status.error,
        )


class StatusReportModel(BaseModel):
    nodes: list[NodeStatusModel] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: StatusReport) -> "StatusReportModel":
        return cls(
            nodes=[NodeStatusModel.from_status(n) for n in report.nodes],
            failed=list(report.failed),
        )


class NodeInfoModel(BaseModel):
    node_id: str
    container_name: str
    container_id: str
    image: str
    log_path: str
    state: NodeState

    @classmethod
    def from_info(cls, info: NodeInfo) -> "NodeInfoModel":
        return cls(
            node_id=info.node_id,
            container_name=info.container_name,
            container_id=info.container_id,
            image=info.image,
            log_path=str(info.log_path),
            state=info.state,
        )


class TeardownModel(BaseModel):
    node_id: str
    success: bool
    container: StepOutcome | None = None
    log_file: StepOutcome | None = None
    schedule_entry: StepOutcome | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: TeardownResult) -> "TeardownModel":
        return cls(
            node_id=result.node_id,
            success=True,
            container=result.container,
            log_file=result.log_file,
            schedule_entry=result.schedule_entry,
        )


class BatchTeardownModel(BaseModel):
    success: bool
    nodes: list[TeardownModel] = Field(default_factory=list)

    @classmethod
    def from_batch(cls, batch: BatchTeardownResult) -> "BatchTeardownModel":
        nodes = []
        for outcome in batch.outcomes:
            if outcome.result is not None:
                nodes.append(TeardownModel.from_result(outcome.result))
            else:
                nodes.append(TeardownModel(node_id=outcome.node_id, success=False, error=outcome.error))
        return cls(success=batch.success, nodes=nodes)
