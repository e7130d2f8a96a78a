"""
Debug tracing infrastructure for asciishapes.

This module provides data structures for capturing a trace of the
conversion pipeline. When ``ConversionOptions.debug`` is set, the Diagram
records every pipeline stage with a snapshot of the working grid, and every
decision taken about a boundary set (kept as closed, traced as open, split
because it was mixed, dropped as a duplicate or as obsolete).

This is primarily useful for:
1. Debugging conversions (why did this box turn into two lines?)
2. Understanding the pipeline flow (seeing intermediate grids)
3. Writing targeted tests (verifying specific decisions)

Usage:
    >>> diagram = convert(text, ConversionOptions(debug=True))
    >>> print(diagram.trace.summary())
    >>> diagram.trace.dump_to_file("debug_trace.txt")
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class BoundaryDecision:
    """
    Record of what happened to one boundary set.

    Attributes:
        stage: Pipeline stage that took the decision
        cells: The boundary set as a cells string
        boundary_type: Type of the set when the decision was taken
        action: What was done (e.g. "closed_shape", "open_shape",
                "split_mixed", "obsolete", "dropped")
    """

    stage: str
    cells: str
    boundary_type: str
    action: str

    def __str__(self) -> str:
        cells = self.cells if len(self.cells) <= 60 else self.cells[:60] + "..."
        return f"[{self.stage}] {self.boundary_type} -> {self.action}: {cells}"


@dataclass
class PipelineStage:
    """
    Snapshot of state at a pipeline stage.

    The conversion pipeline has these stages:
    1. annotations - Markup tags and color codes found in the grid
    2. work_grid - Working copy with annotations blanked out
    3. distinct_shapes - Separate line networks
    4. boundary_sets - Boundary sets found by filling blank regions
    5. classified - Sets sorted into closed, open and mixed
    6. resolved - Mixed sets split, obsolete sets removed
    7. closed_shapes - Polygons built
    8. open_shapes - Polylines built and anchored
    9. markup - Colors and tags applied
    10. text - Text labels extracted

    Attributes:
        name: Name of this pipeline stage
        data: Dictionary of relevant data at this stage
        grid_snapshot: Optional list of grid rows at this point
    """

    name: str
    data: Dict[str, Any]
    grid_snapshot: Optional[List[str]] = None

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            # Truncate long values
            str_val = str(value)
            if len(str_val) > 100:
                str_val = str_val[:100] + "..."
            lines.append(f"  {key}: {str_val}")
        if self.grid_snapshot:
            lines.append("  Grid preview (first 15 rows):")
            for row in self.grid_snapshot[:15]:
                lines.append(f"    |{row}|")
        return "\n".join(lines)


@dataclass
class ConversionTrace:
    """
    Complete trace of a conversion.

    Usage:
        >>> diagram = convert(text, ConversionOptions(debug=True))
        >>> trace = diagram.trace
        >>>
        >>> # Get summary
        >>> print(trace.summary())
        >>>
        >>> # Which sets were split because they were mixed?
        >>> for decision in trace.get_decisions_by_action("split_mixed"):
        ...     print(decision)
        >>>
        >>> # Working grid at a specific stage
        >>> rows = trace.get_grid_at_stage("work_grid")

    Attributes:
        stages: List of pipeline stages with their data
        decisions: List of all boundary set decisions
        warnings: Warnings raised during the conversion
        input_text: The grid the conversion started from
    """

    stages: List[PipelineStage] = field(default_factory=list)
    decisions: List[BoundaryDecision] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    input_text: str = ""

    def add_stage(
        self,
        name: str,
        data: Dict[str, Any],
        grid: Optional[Any] = None,
    ) -> None:
        """
        Add a pipeline stage snapshot.

        Args:
            name: Name of the stage (e.g., "work_grid")
            data: Dictionary of relevant data at this stage
            grid: Optional TextGrid to snapshot
        """
        snapshot = grid.get_rows() if grid is not None else None
        self.stages.append(PipelineStage(name, data.copy(), snapshot))

    def add_decision(
        self, stage: str, cells: str, boundary_type: str, action: str
    ) -> None:
        self.decisions.append(BoundaryDecision(stage, cells, boundary_type, action))

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        """Get a specific pipeline stage by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def get_grid_at_stage(self, name: str) -> Optional[List[str]]:
        """Get the grid snapshot at a specific stage."""
        stage = self.get_stage(name)
        if stage and stage.grid_snapshot:
            return stage.grid_snapshot
        return None

    def get_decisions_by_action(self, action: str) -> List[BoundaryDecision]:
        return [d for d in self.decisions if d.action == action]

    def summary(self) -> str:
        """
        Generate a human-readable summary of the trace.

        Returns a string with:
        - Input text
        - Pipeline stages overview
        - Decision statistics and warnings
        """
        lines = [
            "=" * 60,
            "CONVERSION TRACE SUMMARY",
            "=" * 60,
            "",
            f"Input: {repr(self.input_text[:100])}"
            f"{'...' if len(self.input_text) > 100 else ''}",
            "",
            f"Pipeline stages: {len(self.stages)}",
        ]

        for stage in self.stages:
            has_grid = "+" if stage.grid_snapshot else "-"
            lines.append(f"  [{has_grid}] {stage.name}")

        lines.extend(["", f"Boundary decisions: {len(self.decisions)}"])

        action_counts: Dict[str, int] = {}
        for decision in self.decisions:
            action_counts[decision.action] = action_counts.get(decision.action, 0) + 1
        for action, count in sorted(action_counts.items(), key=lambda x: -x[1]):
            lines.append(f"  {action}: {count}")

        lines.extend(["", f"Warnings: {len(self.warnings)}"])
        for warning in self.warnings:
            lines.append(f"  {warning}")

        return "\n".join(lines)

    def dump(self) -> str:
        """
        Generate a complete human-readable dump of the trace.

        This includes all stages with their full data and all boundary
        decisions. Can be quite long for big diagrams.
        """
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]

        lines.append("PIPELINE STAGES:")
        lines.append("-" * 40)
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")

        lines.append("BOUNDARY DECISIONS:")
        lines.append("-" * 40)
        for decision in self.decisions:
            lines.append(str(decision))

        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        """Write the complete trace dump to a file."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())

    def dump_grid_evolution(self) -> str:
        """Show the grid snapshot of every stage that has one."""
        lines = [
            "=" * 60,
            "GRID EVOLUTION",
            "=" * 60,
        ]

        for stage in self.stages:
            if stage.grid_snapshot:
                lines.append("")
                lines.append(f"--- After: {stage.name} ---")
                for row in stage.grid_snapshot:
                    lines.append(f"|{row}|")

        return "\n".join(lines)
