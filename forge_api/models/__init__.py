"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from forge_api.models.project_invites import ProjectInvite
from forge_api.models.project_members import ProjectMember
from forge_api.models.projects import Project
from forge_api.models.tasks import Task
from forge_api.models.users import User

__all__ = [
    "Project",
    "ProjectInvite",
    "ProjectMember",
    "Task",
    "User",
]
