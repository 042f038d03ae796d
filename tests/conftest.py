"""
Test fixtures shared across all RaceWatch tests.
"""

import pytest

from racewatch.models.project_models import Atom, Molecule, Project, ProjectModule
from racewatch.models.race_models import AccessPoint


UNGUARDED_INC = """function inc() {
  const next = global.counter + 1;
  global.counter = next;
  return global.counter;
}"""

LOCKED_INC = """async function inc() {
  await lock.acquire();
  state.value = state.value + 1;
  lock.release();
}"""

UNLOCKED_INC = """async function inc() {
  const v = await load();
  state.value = v;
}"""


def build_project(files, module_name="core"):
    """Project with one module; `files` maps file path -> list of Atoms."""
    return Project(
        modules=[
            ProjectModule(
                module_name=module_name,
                module_path=module_name,
                files=[Molecule(file_path=path, atoms=atoms) for path, atoms in files.items()],
            )
        ]
    )


def access_for(atom, file_path, access_type="write", line=2, module="core", **extra):
    return AccessPoint(
        atom=atom.id,
        atom_name=atom.name,
        file=file_path,
        module=module,
        line=line,
        is_async=atom.is_async,
        is_exported=atom.is_exported,
        type=access_type,
        **extra,
    )


@pytest.fixture
def make_project():
    return build_project


@pytest.fixture
def make_access():
    return access_for


@pytest.fixture
def counter_project():
    """a.js::inc and b.js::inc, both unguarded writers of global.counter."""
    return build_project(
        {
            "a.js": [Atom(id="a.js::inc", name="inc", code=UNGUARDED_INC, line=1)],
            "b.js": [Atom(id="b.js::inc", name="inc", code=UNGUARDED_INC, line=1)],
        }
    )


@pytest.fixture
def counter_accesses(counter_project):
    atom_a = counter_project.modules[0].files[0].atoms[0]
    atom_b = counter_project.modules[0].files[1].atoms[0]
    return [access_for(atom_a, "a.js", line=3), access_for(atom_b, "b.js", line=3)]


@pytest.fixture
def lock_project():
    """One locked and one unlocked async writer of state.value, in different files."""
    return build_project(
        {
            "locked.js": [Atom(id="locked.js::inc", name="inc", code=LOCKED_INC, is_async=True)],
            "open.js": [Atom(id="open.js::inc", name="inc", code=UNLOCKED_INC, is_async=True)],
        }
    )
