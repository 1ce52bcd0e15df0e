"""Tenant activity feed API: chronological events reconstructed from nominations and assessments."""

from fastapi import APIRouter, Query

from reviewhub.config import settings
from reviewhub.dependencies import CurrentUser, FeedBuilder
from reviewhub.models.activity import ActivityFeed

router = APIRouter(tags=["Activity"])


@router.get("/activity", response_model=ActivityFeed)
async def list_activity(
    user: CurrentUser,
    builder: FeedBuilder,
    limit: int = Query(default=settings.feed_output_limit, ge=0, le=200),
    window: int = Query(default=settings.feed_window_size, ge=1, le=500),
) -> ActivityFeed:
    """Return the caller's tenant feed, newest first.

    Sources that could not be read are listed in ``errors``.
    """
    return await builder.build_feed(
        window_size=window,
        output_limit=limit,
        client_id=user.get("client_id"),
        viewer=user,
    )
