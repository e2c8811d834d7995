"""Campaign audience selection.

Narrows a score segment down to the contacts a campaign should go to. The
pipeline starts from the segment's scored contacts (optionally with a minimum
score), loads their rows and then applies in-memory filters in a fixed
order. Every stage only removes contacts.

Stages after loading:
    purchase recency -> birthday window -> spend range -> interest type ->
    source -> tags (any) -> updated_at recency -> hot-segment recent buyer
    exclusion
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.birthday import is_birthday_within_days
from app.core.timestamps import Absent, Parsed, TimestampValue, Unparsed, classify_timestamp, utcnow
from app.domain.services.scoring_service import Segment, coerce_spend
from app.persistence.models.contact import Contact
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.score_repository import ScoreRepository
from app.settings import settings

logger = logging.getLogger(__name__)

PurchaseMode = Literal["any", "never", "within", "olderThan"]
UpdatedMode = Literal["any", "within", "olderThan"]

UNKNOWN_INTEREST = "unknown"
FASHION_OR_OTHER = "fashion/other"


class CampaignFilterSpec(BaseModel):
    """Audience filters for one campaign request. Unset fields do not constrain."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    min_score: float | None = None
    purchase_mode: PurchaseMode | None = None
    purchase_days: int | None = None
    birthday_within_days: int | None = None
    spend_min: float | None = None
    spend_max: float | None = None
    interest_types: list[str] | None = None
    sources: list[str] | None = None
    tags_any: list[str] | None = None
    updated_mode: UpdatedMode | None = None
    updated_days: int | None = None

    @property
    def purchase_mode_explicit(self) -> bool:
        """True when the caller chose a purchase mode other than 'any'."""
        return self.purchase_mode not in (None, "any")


@dataclass(frozen=True)
class CampaignCounts:
    """Progressively narrowed audience sizes for a campaign preview."""

    segment_total: int
    after_filters: int
    sendable: int


# ── Recency policies ─────────────────────────────────────────────────────
# Each takes a classified timestamp and the cutoff and decides membership.
# Unparsed values are "infinitely old" for olderThan and never "recent".

def _is_within(value: TimestampValue, cutoff: datetime) -> bool:
    return isinstance(value, Parsed) and value.value >= cutoff


def _is_older_than(value: TimestampValue, cutoff: datetime) -> bool:
    if isinstance(value, (Absent, Unparsed)):
        return True
    return value.value < cutoff


def _recency_filter(
    mode: str | None,
    days: int | None,
    get_value: Callable[[Any], Any],
    now: datetime,
) -> Callable[[Any], bool] | None:
    if mode in (None, "any") or days is None:
        return None

    cutoff = now - timedelta(days=days)
    if mode == "within":
        return lambda contact: _is_within(classify_timestamp(get_value(contact)), cutoff)
    if mode == "olderThan":
        return lambda contact: _is_older_than(classify_timestamp(get_value(contact)), cutoff)
    return None


# ── Individual stages ────────────────────────────────────────────────────

def _purchase_stage(spec: CampaignFilterSpec, now: datetime) -> Callable[[Any], bool] | None:
    if spec.purchase_mode == "never":
        return lambda contact: isinstance(classify_timestamp(contact.last_purchase_at), Absent)
    return _recency_filter(spec.purchase_mode, spec.purchase_days, lambda c: c.last_purchase_at, now)


def _birthday_stage(spec: CampaignFilterSpec, now: datetime) -> Callable[[Any], bool] | None:
    if spec.birthday_within_days is None:
        return None
    today = now.date()
    return lambda contact: is_birthday_within_days(contact.dob, spec.birthday_within_days, today=today)


def _spend_stage(spec: CampaignFilterSpec) -> Callable[[Any], bool] | None:
    if spec.spend_min is None and spec.spend_max is None:
        return None

    def matches(contact: Any) -> bool:
        spend = coerce_spend(contact.total_spend)
        if spec.spend_min is not None and spend < spec.spend_min:
            return False
        if spec.spend_max is not None and spend > spec.spend_max:
            return False
        return True

    return matches


def interest_matches(interest_type: str | None, allowed: Sequence[str]) -> bool:
    """Case-insensitive interest allow-list check.

    A contact without an interest only matches 'unknown'; 'fashion/other'
    matches either 'fashion' or 'other'.
    """
    if not interest_type:
        return UNKNOWN_INTEREST in allowed

    normalized = interest_type.lower()
    for entry in allowed:
        wanted = entry.lower()
        if wanted == FASHION_OR_OTHER:
            if normalized in ("fashion", "other"):
                return True
        elif normalized == wanted:
            return True
    return False


def _interest_stage(spec: CampaignFilterSpec) -> Callable[[Any], bool] | None:
    if not spec.interest_types:
        return None
    return lambda contact: interest_matches(contact.interest_type, spec.interest_types)


def _source_stage(spec: CampaignFilterSpec) -> Callable[[Any], bool] | None:
    if not spec.sources:
        return None
    return lambda contact: bool(contact.source) and contact.source in spec.sources


def _tags_stage(spec: CampaignFilterSpec) -> Callable[[Any], bool] | None:
    if not spec.tags_any:
        return None
    wanted = set(spec.tags_any)
    return lambda contact: bool(wanted.intersection(contact.tags or []))


def _updated_stage(spec: CampaignFilterSpec, now: datetime) -> Callable[[Any], bool] | None:
    return _recency_filter(spec.updated_mode, spec.updated_days, lambda c: c.updated_at, now)


def _hot_recent_buyer_stage(
    segment: str, spec: CampaignFilterSpec, now: datetime
) -> Callable[[Any], bool] | None:
    # Hot contacts who just bought are not re-solicited unless the caller
    # filtered on purchases explicitly.
    if segment != Segment.HOT.value or spec.purchase_mode_explicit:
        return None
    cutoff = now - timedelta(days=settings.hot_recent_buyer_exclusion_days)
    return lambda contact: not _is_within(classify_timestamp(contact.last_purchase_at), cutoff)


def filter_contacts(
    contacts: Iterable[Any],
    segment: str,
    spec: CampaignFilterSpec,
    now: datetime | None = None,
) -> list[Any]:
    """Apply the in-memory filter stages to already loaded contacts.

    Args:
        contacts: Contacts of the segment (models or objects with the same fields)
        segment: Segment being targeted
        spec: Filters to apply
        now: Reference time (naive UTC), defaults to the current time

    Returns:
        Contacts passing every stage, in input order
    """
    if now is None:
        now = utcnow()

    stages = [
        _purchase_stage(spec, now),
        _birthday_stage(spec, now),
        _spend_stage(spec),
        _interest_stage(spec),
        _source_stage(spec),
        _tags_stage(spec),
        _updated_stage(spec, now),
        _hot_recent_buyer_stage(segment, spec, now),
    ]

    remaining = list(contacts)
    for stage in stages:
        if stage is None:
            continue
        remaining = [contact for contact in remaining if stage(contact)]
        if not remaining:
            break
    return remaining


def select_sendable(contacts: Iterable[Any], require_opt_in: bool | None = None) -> list[Any]:
    """Apply the opt-in gate.

    The gate is off by default (every contact is treated as opted in); set
    CAMPAIGN_REQUIRE_OPT_IN to only keep contacts with opt_in_status true.
    """
    if require_opt_in is None:
        require_opt_in = settings.campaign_require_opt_in
    if not require_opt_in:
        return list(contacts)
    return [contact for contact in contacts if contact.opt_in_status]


class CampaignFilterService:
    """Resolves campaign audiences from stored scores and contacts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.contact_repo = ContactRepository(session)
        self.score_repo = ScoreRepository(session)

    async def load_filtered_contacts(
        self, segment: str, spec: CampaignFilterSpec, now: datetime | None = None
    ) -> list[Contact]:
        """Run the full pipeline and return the matching contact rows."""
        contact_ids = await self.score_repo.list_contact_ids_by_segment(segment, spec.min_score)
        if not contact_ids:
            return []

        contacts = await self.contact_repo.list_by_ids(contact_ids)
        return filter_contacts(contacts, segment, spec, now=now)

    async def apply_campaign_filters(
        self, segment: str, spec: CampaignFilterSpec, now: datetime | None = None
    ) -> list[str]:
        """Contact ids in a segment that pass every filter.

        Returns:
            Matching contact ids; empty when the segment has no scored
            contacts or the filters eliminate everyone
        """
        contacts = await self.load_filtered_contacts(segment, spec, now=now)
        return [contact.id for contact in contacts]

    async def get_campaign_counts(
        self, segment: str, spec: CampaignFilterSpec, now: datetime | None = None
    ) -> CampaignCounts:
        """Segment size, size after filters, and sendable size.

        Computed fresh on every call.
        """
        segment_total = await self.score_repo.count_contacts_in_segment(segment)
        if segment_total == 0:
            return CampaignCounts(segment_total=0, after_filters=0, sendable=0)

        filtered = await self.load_filtered_contacts(segment, spec, now=now)
        sendable = select_sendable(filtered)

        logger.debug(
            f"Campaign counts for {segment}: total={segment_total}, "
            f"after_filters={len(filtered)}, sendable={len(sendable)}"
        )
        return CampaignCounts(
            segment_total=segment_total,
            after_filters=len(filtered),
            sendable=len(sendable),
        )
