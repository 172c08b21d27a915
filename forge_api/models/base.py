"""Base model class adding the `objects` query manager to SQLModel tables."""

from __future__ import annotations

from typing import ClassVar

from sqlmodel import SQLModel

from forge_api.db.query_manager import ManagerDescriptor


class QueryModel(SQLModel, table=False):
    """SQLModel base with `Model.objects` for chainable async queries."""

    objects: ClassVar[ManagerDescriptor] = ManagerDescriptor()
