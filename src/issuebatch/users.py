"""Resolve spreadsheet email references to tracker account ids."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from .concurrency import AsyncTrackerClient
from .errors import UserLookupError
from .logging import get_logger
from .models import ResolvedUser
from .tracker_rest import TrackerAPIError

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


class UserResolver:
    """Per-import memoized email -> account resolution.

    ``resolve_all`` populates the cache concurrently; afterwards the resolver
    is only read. Each lowercased email is searched at most once.
    """

    def __init__(self, client: AsyncTrackerClient):
        self.client = client
        self.logger = get_logger()
        self._cache: dict[str, ResolvedUser | None] = {}
        self._inflight: dict[str, asyncio.Task[ResolvedUser | None]] = {}

    async def _search(self, email: str) -> ResolvedUser | None:
        try:
            candidates = await self.client.search_users(email)
        except TrackerAPIError as exc:
            raise UserLookupError(f"User search for {email} failed: {exc}") from exc
        wanted = email.lower()
        for user in candidates:
            address = user.get("emailAddress")
            account_id = user.get("accountId")
            if isinstance(address, str) and address.lower() == wanted and account_id:
                return ResolvedUser(account_id=str(account_id), email=address)
        self.logger.debug("No tracker account matches email", email=email)
        return None

    async def resolve(self, email: str) -> ResolvedUser | None:
        email = email.strip()
        if not email or not is_valid_email(email):
            if email:
                self.logger.warning(f"Invalid email format provided: {email!r}; skipping user lookup")
            return None
        key = email.lower()
        if key in self._cache:
            return self._cache[key]
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._search(email))
            self._inflight[key] = task
        try:
            result = await task
        finally:
            self._inflight.pop(key, None)
        self._cache[key] = result
        return result

    async def resolve_all(self, emails: Iterable[str]) -> Mapping[str, ResolvedUser | None]:
        distinct: dict[str, str] = {}
        for email in emails:
            cleaned = email.strip()
            if cleaned:
                distinct.setdefault(cleaned.lower(), cleaned)
        await asyncio.gather(*(self.resolve(e) for e in distinct.values()))
        self.logger.log_operation(
            "users_resolved",
            requested=len(distinct),
            resolved=sum(1 for u in self._cache.values() if u is not None),
        )
        return self.snapshot()

    def snapshot(self) -> Mapping[str, ResolvedUser | None]:
        return MappingProxyType(dict(self._cache))

    def cached(self, email: str) -> ResolvedUser | None:
        return self._cache.get(email.strip().lower())


__all__ = ["UserResolver", "is_valid_email"]
