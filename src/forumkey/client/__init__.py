"""HTTP client module for forumkey.

Provides :class:`ForumClient`, a blocking client backed by
:class:`httpx.Client` that attaches the stored User API Key (if any) to
every request.

Example::

    from forumkey.client import ForumClient

    with ForumClient(server, credential=key) as client:
        user = client.current_user()
"""

from forumkey.client.sync_client import ForumClient

__all__ = ["ForumClient"]
