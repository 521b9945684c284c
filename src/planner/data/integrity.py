"""
Referential integrity rules for the area → project → task hierarchy.

These are pure functions over record collections so the rules can be checked
(and tested) without touching storage.
"""
from typing import Iterable, List

from planner.models import Area, Project, Task


def count_projects(area_id: str, projects: Iterable[Project]) -> int:
    """Number of projects that belong to the given area."""
    return sum(1 for p in projects if p.area_id == area_id)


def count_tasks(project_id: str, tasks: Iterable[Task]) -> int:
    """Number of tasks that belong to the given project."""
    return sum(1 for t in tasks if t.project_id == project_id)


def area_has_dependents(area_id: str, projects: Iterable[Project]) -> bool:
    return any(p.area_id == area_id for p in projects)


def project_has_dependents(project_id: str, tasks: Iterable[Task]) -> bool:
    return any(t.project_id == project_id for t in tasks)


def find_dangling_references(areas: Iterable[Area], projects: Iterable[Project], tasks: Iterable[Task]) -> List[str]:
    """
    Describe every foreign key that points at a missing parent.

    Returns:
        Human readable problem descriptions; empty when the data is consistent.
    """
    area_ids = {a.id for a in areas}
    projects = list(projects)
    project_ids = {p.id for p in projects}

    problems = []
    for project in projects:
        if project.area_id not in area_ids:
            problems.append(f"project {project.id} references missing area {project.area_id}")
    for task in tasks:
        if task.project_id not in project_ids:
            problems.append(f"task {task.id} references missing project {task.project_id}")
    return problems
