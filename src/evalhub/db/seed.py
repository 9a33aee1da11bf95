# evalhub/db/seed.py
"""Idempotent loading of users, workspaces, members and projects."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from evalhub.db.models import MemberOfWorkspace, Project, User, Workspace
from evalhub.schemas.seed import SeedModel, SeedWorkspace

logger = logging.getLogger(__name__)


@dataclass
class SeedResult:
    users: int = 0
    workspaces: int = 0
    members: int = 0
    projects: int = 0


async def _get_or_create_workspace(
    db: AsyncSession, ws: SeedWorkspace, result: SeedResult
) -> Workspace:
    stmt = select(Workspace)
    if ws.id is not None:
        stmt = stmt.where(Workspace.id == ws.id)
    else:
        stmt = stmt.where(Workspace.name == ws.name)
    existing = (await db.execute(stmt)).scalars().first()
    if existing is not None:
        existing.name = ws.name
        return existing

    workspace = Workspace(name=ws.name)
    if ws.id is not None:
        workspace.id = ws.id
    db.add(workspace)
    await db.flush()
    result.workspaces += 1
    return workspace


async def seed_database(db: AsyncSession, payload: SeedModel) -> SeedResult:
    """
    Upsert the payload. Users are keyed by e-mail, workspaces by id (or name
    when no id is given), projects by id (or name within their workspace).
    """
    result = SeedResult()
    users_by_email: dict[str, User] = {}

    for u in payload.users:
        existing = (
            await db.execute(select(User).where(User.email == u.email))
        ).scalars().first()
        if existing is None:
            existing = User(name=u.name, email=u.email)
            db.add(existing)
            result.users += 1
        else:
            existing.name = u.name
        users_by_email[u.email] = existing

    await db.flush()

    for ws in payload.workspaces:
        workspace = await _get_or_create_workspace(db, ws, result)

        for m in ws.members:
            user = users_by_email.get(m.email)
            if user is None:
                user = (
                    await db.execute(select(User).where(User.email == m.email))
                ).scalars().first()
            if user is None:
                raise ValueError(
                    f"Workspace '{ws.name}' references unknown user {m.email}"
                )

            membership = await db.get(MemberOfWorkspace, (workspace.id, user.id))
            if membership is None:
                db.add(
                    MemberOfWorkspace(
                        workspace_id=workspace.id,
                        user_id=user.id,
                        member_role=m.role,
                    )
                )
                result.members += 1
            else:
                membership.member_role = m.role

        for p in ws.projects:
            stmt = select(Project).where(Project.workspace_id == workspace.id)
            if p.id is not None:
                stmt = select(Project).where(Project.id == p.id)
            else:
                stmt = stmt.where(Project.name == p.name)
            project = (await db.execute(stmt)).scalars().first()
            if project is None:
                project = Project(name=p.name, workspace_id=workspace.id)
                if p.id is not None:
                    project.id = p.id
                db.add(project)
                result.projects += 1
            else:
                project.name = p.name
                project.workspace_id = workspace.id

        await db.flush()

    await db.commit()

    logger.info(
        "Seed completed. users=%d workspaces=%d members=%d projects=%d",
        result.users,
        result.workspaces,
        result.members,
        result.projects,
    )
    return result
