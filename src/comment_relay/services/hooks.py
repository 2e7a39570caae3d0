"""Commands run after a new comment is published."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex

from comment_relay.core.settings import settings
from comment_relay.services.comment_service import PublishedComment

logger = logging.getLogger(__name__)


async def run_on_comment_commands(comment: PublishedComment) -> int:
    """Spawn each configured ``ON_COMMENT_CMDS`` entry for a new comment.

    Commands get the comment's id, post and author in their environment. A
    failing command is logged and does not affect the others.

    Returns:
        Number of commands that exited with status 0.
    """
    env = {
        **os.environ,
        "COMMENT_ID": comment.comment_id,
        "COMMENT_POST_ID": comment.post_id,
        "COMMENT_AUTHOR": comment.owner_name,
    }
    succeeded = 0
    for command in settings.on_comment_cmds:
        argv = shlex.split(command)
        if not argv:
            continue
        try:
            process = await asyncio.create_subprocess_exec(*argv, env=env)
            returncode = await process.wait()
        except OSError as exc:
            logger.error("On-comment command %r could not start: %s", command, exc)
            continue
        if returncode != 0:
            logger.warning("On-comment command %r exited with %d", command, returncode)
            continue
        succeeded += 1
    return succeeded
