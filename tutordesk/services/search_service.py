"""Free-text account search across account fields and member names.

Two independent branches, each capped at ``limit`` rows:

- accounts whose display name, email or phone contains the text
- accounts owning a member whose name contains the text

The result is their union, deduplicated by account id. A query broad enough
to reach the cap on either branch can miss matches. That truncation is a
known limitation of the directory search and is logged, not compensated for.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.errors import QueryStage, StoreReadError
from tutordesk.models.account import Account
from tutordesk.services.account_store import AccountStore
from tutordesk.services.directory_types import statuses_for

logger = logging.getLogger(__name__)


class SearchResolver:
    """Resolve a search string to the set of matching accounts."""

    def __init__(self, session: AsyncSession, limit: int):
        self.store = AccountStore(session)
        self.limit = limit

    async def resolve(self, text: str, status_filter: str) -> list[Account]:
        """Find accounts matching text on account fields or member names.

        Args:
            text: Search text; surrounding whitespace is ignored, empty means
                no search and returns no candidates
            status_filter: Account status or "all", applied to both branches

        Returns:
            Matching accounts with members loaded: account-field matches first,
            then accounts found only through a member. Order within the result
            carries no meaning; callers sort.

        Raises:
            StoreReadError: stage "search", if either branch fails
        """
        text = text.strip()
        if not text:
            return []

        statuses = statuses_for(status_filter)
        try:
            account_matches = await self.store.search_accounts(text, statuses, self.limit)
            member_rows = await self.store.search_member_account_ids(text, self.limit)
            member_account_ids = list(dict.fromkeys(member_rows))

            found_ids = {account.id for account in account_matches}
            missing_ids = [aid for aid in member_account_ids if aid not in found_ids]
            member_matches = await self.store.fetch_by_ids(missing_ids[: self.limit], statuses)
        except SQLAlchemyError as e:
            logger.error("Search for %r failed: %s", text, e)
            raise StoreReadError(QueryStage.SEARCH) from e

        self._warn_if_truncated(text, "account", len(account_matches))
        self._warn_if_truncated(text, "member", len(member_rows))

        matches = list(account_matches)
        seen = set(found_ids)
        for account in sorted(member_matches, key=lambda a: a.id):
            if account.id not in seen:
                seen.add(account.id)
                matches.append(account)

        logger.debug(
            "Search %r: %d account-field matches, %d via members, %d total",
            text,
            len(account_matches),
            len(matches) - len(account_matches),
            len(matches),
        )
        return matches

    def _warn_if_truncated(self, text: str, branch: str, count: int) -> None:
        if count >= self.limit:
            logger.warning(
                "Search %r reached the %s branch limit of %d rows; results may be incomplete",
                text,
                branch,
                self.limit,
            )


__all__ = ["SearchResolver"]
