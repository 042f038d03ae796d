"""
Project Data Models — The read-only Atom/Molecule/Project tree.

Produced by the upstream extraction pipeline and consumed as-is. Input keys
follow the extractor's camelCase wire format (filePath, isAsync, dataFlow...);
Python code uses the snake_case attribute names.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_TREE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class CallRef(BaseModel):
    """A call made from inside an atom."""

    model_config = _TREE_CONFIG

    name: str = ""
    type: str = Field(default="internal", description="'internal' or 'external'")
    line: int = 0


class SideEffect(BaseModel):
    """A side effect recorded by the extractor's data-flow pass."""

    model_config = _TREE_CONFIG

    type: str = ""
    variable: str | None = None
    target: str | None = None
    line: int = 0


class DataFlow(BaseModel):
    model_config = _TREE_CONFIG

    side_effects: list[SideEffect] = Field(default_factory=list)


class Atom(BaseModel):
    """One function-like unit of analyzed code."""

    model_config = _TREE_CONFIG

    id: str = Field(..., description="Unique atom ID: '<filePath>::<name>'")
    name: str
    code: str = Field(default="", description="Raw source text of the atom")
    is_async: bool = False
    is_exported: bool = False
    line: int = Field(default=0, description="First source line of the atom in its file")
    calls: list[CallRef] = Field(default_factory=list)
    data_flow: DataFlow = Field(default_factory=DataFlow)


class Molecule(BaseModel):
    """A single source file and the atoms extracted from it."""

    model_config = _TREE_CONFIG

    file_path: str
    atoms: list[Atom] = Field(default_factory=list)


class ProjectModule(BaseModel):
    """A group of files (package / directory) in the project."""

    model_config = _TREE_CONFIG

    module_name: str = "unknown"
    module_path: str = ""
    files: list[Molecule] = Field(default_factory=list)


class FlowStep(BaseModel):
    model_config = _TREE_CONFIG

    function: str | None = None


class BusinessFlow(BaseModel):
    model_config = _TREE_CONFIG

    name: str
    steps: list[FlowStep] = Field(default_factory=list)


class EntryPoint(BaseModel):
    model_config = _TREE_CONFIG

    type: str = ""
    module: str | None = None
    handler: str | None = Field(default=None, description="Handler function name")


class SystemInfo(BaseModel):
    """System-level metadata: business flows and entry points."""

    model_config = _TREE_CONFIG

    business_flows: list[BusinessFlow] = Field(default_factory=list)
    entry_points: list[EntryPoint] = Field(default_factory=list)


class Project(BaseModel):
    """Complete analyzed codebase. Read-only for every phase."""

    model_config = _TREE_CONFIG

    modules: list[ProjectModule] = Field(default_factory=list)
    system: SystemInfo | None = None

    @property
    def is_empty(self) -> bool:
        """True if the tree holds no atoms at all."""
        return not any(
            molecule.atoms for module in self.modules for molecule in module.files
        )
