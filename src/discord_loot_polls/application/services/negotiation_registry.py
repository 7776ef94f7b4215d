"""In-memory bookkeeping of open replacement negotiations."""

from __future__ import annotations

import logging
from datetime import datetime

from ...domain.polls.negotiation import ReplacementNegotiation
from ...domain.shared.exceptions import EntityNotFoundError
from ...domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)


class NegotiationRegistry:
    """Holds negotiations between the offer and the user's choice.

    Entries are removed once resolved. Interaction channels that expire
    without a choice leave stale entries behind; ``discard_older_than``
    drops them without touching any vote.
    """

    def __init__(self) -> None:
        self._negotiations: dict[str, ReplacementNegotiation] = {}

    def register(self, negotiation: ReplacementNegotiation) -> ReplacementNegotiation:
        self._negotiations[negotiation.id] = negotiation
        logger.debug(
            LogTemplates.NEGOTIATION_OPENED,
            negotiation.id,
            negotiation.user_id,
            negotiation.bucket.key,
        )
        return negotiation

    def get(self, negotiation_id: str) -> ReplacementNegotiation:
        negotiation = self._negotiations.get(negotiation_id)
        if negotiation is None:
            raise EntityNotFoundError("ReplacementNegotiation", negotiation_id)
        return negotiation

    def release(self, negotiation_id: str) -> None:
        self._negotiations.pop(negotiation_id, None)

    def discard_older_than(self, cutoff: datetime) -> int:
        stale = [nid for nid, n in self._negotiations.items() if n.opened_at < cutoff]
        for nid in stale:
            del self._negotiations[nid]
        if stale:
            logger.info(LogTemplates.NEGOTIATION_DISCARDED, len(stale))
        return len(stale)

    def __contains__(self, negotiation_id: object) -> bool:
        return negotiation_id in self._negotiations

    def __len__(self) -> int:
        return len(self._negotiations)
