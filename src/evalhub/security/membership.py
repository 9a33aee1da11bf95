# evalhub/security/membership.py
"""
Workspace membership checks.

A user belongs to a project when a ``members_of_workspaces`` row links them
(matched by e-mail, the identity the OIDC provider vouches for) to the
project's workspace.
"""
from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from evalhub.db.engine import get_session
from evalhub.db.models import MemberOfWorkspace, Project, User
from evalhub.security.auth import get_current_user
from evalhub.security.models import AuthenticatedUser

logger = logging.getLogger(__name__)


async def is_user_member_of_project(
    db: AsyncSession,
    user: Optional[AuthenticatedUser],
    project_id: uuid.UUID,
) -> bool:
    if user is None or not user.email:
        return False

    stmt = (
        select(User.id)
        .join(MemberOfWorkspace, User.id == MemberOfWorkspace.user_id)
        .join(Project, MemberOfWorkspace.workspace_id == Project.workspace_id)
        .where(User.email == user.email, Project.id == project_id)
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.first() is not None


async def is_user_member_of_workspace(
    db: AsyncSession,
    user: Optional[AuthenticatedUser],
    workspace_id: uuid.UUID,
) -> bool:
    if user is None or not user.email:
        return False

    stmt = (
        select(User.id)
        .join(MemberOfWorkspace, User.id == MemberOfWorkspace.user_id)
        .where(
            User.email == user.email,
            MemberOfWorkspace.workspace_id == workspace_id,
        )
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.first() is not None


async def require_project_member(
    project_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """FastAPI dependency: 403 unless the caller belongs to ``project_id``."""
    if not await is_user_member_of_project(db, user, project_id):
        logger.info("User %s denied access to project %s", user.sub, project_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a member of this project",
        )
    return user
