"""
Social graph domain — admin-facing routes.

Routes:
  POST  /api/v1/admin/graph/reconcile   Recompute follower/following counters from the edge tables

Requires: ADMIN or SUPER_ADMIN role.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.auth.dependencies import require_admin
from app.config import Settings, get_settings
from app.social_graph import controller as ctrl
from app.social_graph.schemas import ReconcileRequest, ReconcileResponse
from shared.models.user import CurrentUser

router = APIRouter(prefix="/admin/graph", tags=["admin-social-graph"])


@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    summary="[Admin] Repair drifted follower/following counters",
    description=(
        "Counts each user's edges and overwrites counters that disagree. "
        "Pass user_ids to limit the pass; omit the body to scan everyone. "
        "Returns only the rows that were corrected."
    ),
)
async def reconcile_counters(
    body: ReconcileRequest | None = None,
    admin: CurrentUser = Depends(require_admin),
    settings: Settings = Depends(get_settings),
) -> ReconcileResponse:
    user_ids = body.user_ids if body is not None else None
    return await ctrl.admin_reconcile(user_ids, settings)
