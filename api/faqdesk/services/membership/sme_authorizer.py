"""Authorization of expert-only actions against the expert team roster."""

import logging

from faqdesk.core.exceptions import RosterLookupError
from faqdesk.metrics.bot_metrics import membership_lookups_total
from faqdesk.services.membership.membership_cache import MembershipCache

logger = logging.getLogger(__name__)


class SmeAuthorizer:
    """Answers "is this user an expert?" using the cache, then the roster.

    Dependencies injected via constructor:
    - cache: MembershipCache
    - transport: connector client able to list conversation members
    - settings: Settings (SME_TEAM_ID)
    """

    def __init__(self, cache: MembershipCache, transport, settings):
        self.cache = cache
        self.transport = transport
        self.settings = settings

    async def is_authorized(self, user_id: str, service_url: str) -> bool:
        """Check whether a user belongs to the expert team.

        Args:
            user_id: Connector id of the acting user
            service_url: Service URL of the current turn

        Returns:
            True when the user is a member of the expert team

        Raises:
            RosterLookupError: If the roster could not be fetched
        """
        cached = self.cache.get(user_id)
        if cached is not None:
            membership_lookups_total.labels(result="cache_hit").inc()
            return cached

        try:
            members = await self.transport.get_conversation_members(
                service_url, self.settings.SME_TEAM_ID
            )
        except Exception as e:
            membership_lookups_total.labels(result="error").inc()
            logger.exception(
                "Failed to fetch expert team roster",
                extra={"team_id": self.settings.SME_TEAM_ID},
            )
            raise RosterLookupError("Expert team roster unavailable") from e

        is_member = any(member.id == user_id for member in members)
        self.cache.set(user_id, is_member)
        membership_lookups_total.labels(
            result="member" if is_member else "not_member"
        ).inc()
        return is_member
