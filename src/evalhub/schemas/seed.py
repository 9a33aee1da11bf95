# evalhub/schemas/seed.py
from __future__ import annotations

import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class SeedUser(BaseModel):
    name: str
    email: str


class SeedMember(BaseModel):
    email: str
    role: Literal["owner", "member"] = "member"


class SeedProject(BaseModel):
    id: Optional[uuid.UUID] = None
    name: str


class SeedWorkspace(BaseModel):
    id: Optional[uuid.UUID] = None
    name: str
    members: List[SeedMember] = Field(default_factory=list)
    projects: List[SeedProject] = Field(default_factory=list)


class SeedModel(BaseModel):
    users: List[SeedUser] = Field(default_factory=list)
    workspaces: List[SeedWorkspace] = Field(default_factory=list)
