"""
Tests for the tracer module.

These tests verify the debug tracing infrastructure used to capture
detailed information about the layout pipeline.
"""

from archflow.tracer import LayoutTrace, PipelineStage, RoutingDecision


class TestRoutingDecision:
    """Tests for RoutingDecision dataclass."""

    def test_creation(self):
        """Test basic creation of RoutingDecision."""
        decision = RoutingDecision(connection=2, action="detour", detail="around 1 box(es)")
        assert decision.connection == 2
        assert decision.action == "detour"
        assert decision.detail == "around 1 box(es)"

    def test_str_with_detail(self):
        """Test string representation with details."""
        result = str(RoutingDecision(2, "lane_shift", "200 -> 215"))
        assert result == "#2: [lane_shift] 200 -> 215"

    def test_str_without_detail(self):
        """Test string representation without details."""
        assert str(RoutingDecision(0, "curved")) == "#0: [curved]"


class TestPipelineStage:
    """Tests for PipelineStage dataclass."""

    def test_str(self):
        """Test string representation lists each key."""
        stage = PipelineStage("layering", {"layers": {"a": 0}, "has_cycles": False})
        result = str(stage)
        assert "=== Stage: layering ===" in result
        assert "layers: {'a': 0}" in result
        assert "has_cycles: False" in result

    def test_str_truncates_long_values(self):
        """Test that long values are truncated."""
        stage = PipelineStage("routing", {"routes": "x" * 200})
        result = str(stage)
        assert "..." in result
        assert "x" * 101 not in result


class TestLayoutTrace:
    """Tests for LayoutTrace."""

    def test_empty_trace(self):
        """Test a fresh trace has no data."""
        trace = LayoutTrace()
        assert trace.stages == []
        assert trace.decisions == []
        assert trace.orientation == "landscape"

    def test_add_stage_copies_data(self):
        """Test that stage data is copied on add."""
        trace = LayoutTrace()
        data = {"count": 1}
        trace.add_stage("sizing", data)
        data["count"] = 2
        assert trace.get_stage("sizing").data == {"count": 1}

    def test_get_stage_missing(self):
        """Test that an unknown stage returns None."""
        assert LayoutTrace().get_stage("nope") is None

    def test_decision_queries(self):
        """Test filtering decisions by connection and action."""
        trace = LayoutTrace()
        trace.add_decision(0, "sides_selected", "right -> left")
        trace.add_decision(0, "straight")
        trace.add_decision(1, "Z_horizontal")
        trace.add_decision(1, "lane_shift", "200 -> 215")

        assert [d.action for d in trace.get_decisions_for(0)] == ["sides_selected", "straight"]
        assert len(trace.get_decisions_by_action("shift")) == 1
        assert len(trace.get_decisions_by_action("Z_")) == 1

    def test_summary(self):
        """Test summary content."""
        trace = LayoutTrace(orientation="portrait")
        trace.add_stage("sizing", {})
        trace.add_decision(0, "detour")
        trace.add_decision(1, "detour")
        trace.add_decision(1, "straight")

        summary = trace.summary()
        assert "LAYOUT TRACE SUMMARY" in summary
        assert "Orientation: portrait" in summary
        assert "Pipeline stages: 1" in summary
        assert "Total routing decisions: 3" in summary
        assert "Decisions by action:" in summary
        assert summary.index("detour: 2") < summary.index("straight: 1")

    def test_dump(self):
        """Test that the dump includes stages and decisions."""
        trace = LayoutTrace()
        trace.add_stage("ordering", {"order": [1, 0]})
        trace.add_decision(1, "curved")
        dump = trace.dump()
        assert "DETAILED TRACE" in dump
        assert "=== Stage: ordering ===" in dump
        assert "ROUTING DECISIONS:" in dump
        assert "#1: [curved]" in dump

    def test_dump_to_file(self, tmp_path):
        """Test writing the dump to a file."""
        trace = LayoutTrace()
        trace.add_decision(0, "straight")
        path = tmp_path / "trace.txt"
        trace.dump_to_file(str(path))
        assert path.read_text(encoding="utf-8") == trace.dump()
