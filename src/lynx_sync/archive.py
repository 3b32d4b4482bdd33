"""On-demand archiving of a single link."""

import logging

from lynx_sync.database import Database
from lynx_sync.dispatcher import Dispatcher
from lynx_sync.errors import AuthorizationFailure, NotFound

logger = logging.getLogger(__name__)


def request_archive(
    db: Database, dispatcher: Dispatcher, caller_id: str, link_id: int
) -> dict:
    """Start archiving a link owned by the caller.

    Returns as soon as the attempt is queued; the archive may still be
    running or may never complete.

    Raises:
        AuthorizationFailure: If the caller is unauthenticated or not the owner.
        NotFound: If the link does not exist.
    """
    if not caller_id:
        raise AuthorizationFailure("Not authenticated")

    link = db.get_link_by_id(link_id)
    if link is None:
        raise NotFound("Link not found")
    if link.owner_id != caller_id:
        raise AuthorizationFailure("You don't have permission to archive this link")

    dispatcher.dispatch_archive(link_id)
    logger.info("Archive requested for link %s", link_id)
    return {"message": "Archive process started"}
