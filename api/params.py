"""
api/params.py -- Bounded id parameters shared by the v1 routes.

Ids are positive and must fit an SQLite INTEGER. Anything else fails
request validation (400) before a query is built.
"""

from typing import Annotated, Optional

from fastapi import Path, Query

from services.schemas import ID_MAX

ProxyId = Annotated[int, Path(ge=1, le=ID_MAX)]
UserId = Annotated[int, Path(ge=1, le=ID_MAX)]
DepartmentId = Annotated[int, Path(ge=1, le=ID_MAX)]

IdFilter = Annotated[Optional[int], Query(ge=1, le=ID_MAX)]
