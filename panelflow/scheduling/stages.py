"""
Workflow stage definitions.

Step types, step statuses and the fixed production pipeline. Every pipeline
lookup goes through `stage_definition()` so an unknown step type fails loudly
instead of producing a no-op step.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class StepType(Enum):
    PLOT = "plot"
    COVERS = "covers"
    SCRIPT = "script"
    PENCILS = "pencils"
    INKS = "inks"
    COLORS = "colors"
    LETTERS = "letters"
    EDITORIAL = "editorial"
    PROOFS = "proofs"
    PRODUCTION = "production"
    PRINT = "print"


class StepStatus(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    REVISION = "revision"
    APPROVED = "approved"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class Handoff(Enum):
    """How a stage's start relates to the stage it depends on."""
    NONE = "none"          # anchored at the schedule start
    FINISH = "finish"      # after the dependency is due, plus approval
    BATCH = "batch"        # after the dependency's first batch, plus approval
    PARALLEL = "parallel"  # alongside the dependency
    JOIN = "join"          # after every listed dependency is due, plus approval


@dataclass(frozen=True)
class StageDefinition:
    step_type: StepType
    title: str
    sort_order: int
    handoff: Handoff
    depends_on: tuple = ()
    talent_role: str = "editor"


PIPELINE: List[StageDefinition] = [
    StageDefinition(StepType.PLOT, "Plot Development", 10, Handoff.NONE, talent_role="writer"),
    StageDefinition(StepType.COVERS, "Cover Art", 20, Handoff.PARALLEL,
                    (StepType.PLOT,), talent_role="artist"),
    StageDefinition(StepType.SCRIPT, "Script Writing", 30, Handoff.FINISH,
                    (StepType.PLOT,), talent_role="writer"),
    StageDefinition(StepType.PENCILS, "Pencils/Roughs", 40, Handoff.FINISH,
                    (StepType.SCRIPT,), talent_role="artist"),
    StageDefinition(StepType.INKS, "Inks/Finishes", 50, Handoff.BATCH,
                    (StepType.PENCILS,), talent_role="artist"),
    StageDefinition(StepType.COLORS, "Colors", 60, Handoff.BATCH,
                    (StepType.INKS,), talent_role="colorist"),
    StageDefinition(StepType.LETTERS, "Letters", 70, Handoff.BATCH,
                    (StepType.COLORS,), talent_role="letterer"),
    StageDefinition(StepType.EDITORIAL, "Editorial Pages", 75, Handoff.PARALLEL,
                    (StepType.LETTERS,)),
    StageDefinition(StepType.PROOFS, "Final Assembled Reader Proof", 80, Handoff.FINISH,
                    (StepType.LETTERS,)),
    StageDefinition(StepType.PRODUCTION, "Final Production", 90, Handoff.JOIN,
                    (StepType.PROOFS, StepType.EDITORIAL, StepType.COVERS)),
    StageDefinition(StepType.PRINT, "Print", 100, Handoff.FINISH,
                    (StepType.PRODUCTION,)),
]

_BY_TYPE: Dict[StepType, StageDefinition] = {stage.step_type: stage for stage in PIPELINE}


def stage_definition(step_type) -> StageDefinition:
    """Look up a pipeline stage by StepType or its string value.

    Raises:
        ValueError: if the step type is not part of the pipeline
    """
    return _BY_TYPE[parse_step_type(step_type)]


def parse_step_type(value) -> StepType:
    if isinstance(value, StepType):
        return value
    try:
        return StepType(value)
    except ValueError:
        valid = ', '.join(t.value for t in StepType)
        raise ValueError(f"step_type must be one of: {valid}. Got: {value!r}")


def parse_step_status(value: Optional[str]) -> StepStatus:
    if isinstance(value, StepStatus):
        return value
    try:
        return StepStatus(value)
    except ValueError:
        valid = ', '.join(s.value for s in StepStatus)
        raise ValueError(f"status must be one of: {valid}. Got: {value!r}")
