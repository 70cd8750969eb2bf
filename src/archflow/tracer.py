"""
Debug tracing infrastructure for archflow.

This module provides data structures for capturing detailed traces of the
layout pipeline. When debug mode is enabled, the engine records every stage
of processing and every routing decision taken for a connection.

This is primarily useful for:
1. Debugging routing issues (understanding why a path bends where it does)
2. Understanding the pipeline flow (seeing intermediate states)
3. Writing targeted tests (verifying specific routing decisions)

Usage:
    >>> engine = DiagramEngine()
    >>> result = engine.layout(diagram, debug=True)
    >>> trace = engine.get_trace()
    >>> print(trace.summary())
    >>> trace.dump_to_file("layout_trace.txt")
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class RoutingDecision:
    """
    Record of one decision taken while routing a connection.

    Attributes:
        connection: Index of the connection in declaration order
        action: What happened (e.g., "sides_selected", "probe_shift",
                "detour", "lane_shift", "unresolved_collision")
        detail: Human readable details of the decision
    """

    connection: int
    action: str
    detail: str = ""

    def __str__(self) -> str:
        if not self.detail:
            return f"#{self.connection}: [{self.action}]"
        return f"#{self.connection}: [{self.action}] {self.detail}"


@dataclass
class PipelineStage:
    """
    Snapshot of state at a pipeline stage.

    The layout pipeline has these stages:
    1. sizing - Recursive node sizing
    2. layering - Layer assignment of auto-laid nodes
    3. coordinates - Placement of auto-laid nodes
    4. ordering - Connection processing order
    5. anchors - Anchor sides and slots per connection
    6. routing - Final waypoints

    Attributes:
        name: Name of this pipeline stage
        data: Dictionary of relevant data at this stage
    """

    name: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            # Truncate long values
            str_val = str(value)
            if len(str_val) > 100:
                str_val = str_val[:100] + "..."
            lines.append(f"  {key}: {str_val}")
        return "\n".join(lines)


@dataclass
class LayoutTrace:
    """
    Complete trace of one layout run.

    Attributes:
        stages: List of pipeline stages with their data
        decisions: List of all routing decisions
        orientation: The orientation used for auto-layout
    """

    stages: List[PipelineStage] = field(default_factory=list)
    decisions: List[RoutingDecision] = field(default_factory=list)
    orientation: str = "landscape"

    def add_stage(self, name: str, data: Dict[str, Any]) -> None:
        """
        Add a pipeline stage snapshot.

        Args:
            name: Name of the stage (e.g., "layering")
            data: Dictionary of relevant data at this stage
        """
        self.stages.append(PipelineStage(name, data.copy()))

    def add_decision(self, connection: int, action: str, detail: str = "") -> None:
        self.decisions.append(RoutingDecision(connection, action, detail))

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        """Get a specific pipeline stage by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def get_decisions_for(self, connection: int) -> List[RoutingDecision]:
        """Get all decisions recorded for one connection index."""
        return [d for d in self.decisions if d.connection == connection]

    def get_decisions_by_action(self, action_substring: str) -> List[RoutingDecision]:
        """Get all decisions with a specific action (partial match)."""
        return [d for d in self.decisions if action_substring in d.action]

    def summary(self) -> str:
        """
        Generate a human-readable summary of the trace.

        Returns a string with:
        - Pipeline stages overview
        - Routing decision statistics
        """
        lines = [
            "=" * 60,
            "LAYOUT TRACE SUMMARY",
            "=" * 60,
            "",
            f"Orientation: {self.orientation}",
            "",
            f"Pipeline stages: {len(self.stages)}",
        ]

        for stage in self.stages:
            lines.append(f"  {stage.name}")

        lines.extend(["", f"Total routing decisions: {len(self.decisions)}", ""])

        action_counts: Dict[str, int] = {}
        for d in self.decisions:
            action_counts[d.action] = action_counts.get(d.action, 0) + 1

        lines.append("Decisions by action:")
        for action, count in sorted(action_counts.items(), key=lambda x: -x[1]):
            lines.append(f"  {action}: {count}")

        return "\n".join(lines)

    def dump(self) -> str:
        """
        Generate a complete human-readable dump of the trace.

        This includes all stages with their full data and all routing
        decisions. Can be quite long for large diagrams.
        """
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]

        lines.append("PIPELINE STAGES:")
        lines.append("-" * 40)
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")

        lines.append("ROUTING DECISIONS:")
        lines.append("-" * 40)
        for d in self.decisions:
            lines.append(str(d))

        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        """Write the complete trace dump to a file."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())
