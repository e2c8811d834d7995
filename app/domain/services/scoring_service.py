"""Lead scoring and segmentation.

``compute_score`` is a pure function from a contact's attributes to a score,
a hot/warm/cold segment and the ordered list of rules that contributed.
``ScoringService`` runs it over stored contacts and upserts the results.

Rules are evaluated in a fixed order and are additive; none suppresses
another. Each rule that awards points records one ``ScoreReason``.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timestamps import days_since, parse_timestamp, utcnow
from app.persistence.models.contact import Contact
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.score_repository import ScoreRepository

logger = logging.getLogger(__name__)

HOT_THRESHOLD = 60
WARM_THRESHOLD = 35


class Segment(str, Enum):
    """Score-derived campaign tier."""

    HOT = "hot"
    WARM = "warm"
    COLD = "cold"


def segment_for_score(score: float) -> Segment:
    """Map a total score to its segment."""
    if score >= HOT_THRESHOLD:
        return Segment.HOT
    if score >= WARM_THRESHOLD:
        return Segment.WARM
    return Segment.COLD


# rule id -> display text
REASON_LABELS: dict[str, str] = {
    "recent_interaction_7d": "Recent inquiry/visit (7d)",
    "recent_interaction_30d": "Recent inquiry/visit (30d)",
    "recently_updated_7d": "Recently updated (7d)",
    "recently_updated_30d": "Recently updated (30d)",
    "interest_engagement": "Engagement interest",
    "interest_wedding": "Wedding interest",
    "interest_other": "Other ring interest",
    "purchase_30d": "Recent purchase (30d)",
    "purchase_90d": "Recent purchase (90d)",
    "purchase_180d": "Recent purchase (180d)",
    "spend_20k": "Very high spend >= 20k",
    "spend_10k": "High spend >= 10k",
    "spend_7_5k": "Mid-high spend 7.5k-10k",
    "spend_5k": "Mid spend 5k-7.5k",
    "spend_2_5k": "Low-mid spend 2.5k-5k",
    "spend_positive": "Low spend > 0",
    "source_high_intent": "High-intent source",
    "source_normal_intent": "Normal-intent source",
    "ring_size_known": "Ring size known",
    "catalog_or_follow_up": "Requested catalog / follow-up",
    "appointment_booked": "Appointment booked",
}

# (threshold, points, rule id), highest first; the positive tier is handled separately
SPEND_TIERS: tuple[tuple[int, int, str], ...] = (
    (20000, 25, "spend_20k"),
    (10000, 20, "spend_10k"),
    (7500, 15, "spend_7_5k"),
    (5000, 12, "spend_5k"),
    (2500, 8, "spend_2_5k"),
)

HIGH_INTENT_SOURCES = frozenset({"referral", "vip", "repeat"})
NORMAL_INTENT_SOURCES = frozenset({"website", "instagram", "walkin"})


@dataclass(frozen=True)
class ScoreReason:
    """One scoring rule that awarded points."""

    rule_id: str
    points: int

    @property
    def label(self) -> str:
        return REASON_LABELS.get(self.rule_id, self.rule_id)


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of scoring one contact."""

    score: int
    segment: Segment
    reasons: tuple[ScoreReason, ...] = field(default_factory=tuple)

    def reason_labels(self) -> list[str]:
        """Human-readable reasons in rule evaluation order."""
        return [reason.label for reason in self.reasons]


def coerce_spend(value: Any) -> float:
    """Coerce a stored spend value to a number; garbage and NaN become 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        try:
            number = float(Decimal(str(value).strip()))
        except (InvalidOperation, ValueError):
            return 0.0
    if math.isnan(number):
        return 0.0
    return number


def _attr(contact: Any, name: str) -> Any:
    if isinstance(contact, Mapping):
        return contact.get(name)
    return getattr(contact, name, None)


def _tag_set(raw_tags: Any) -> set[str]:
    if not raw_tags:
        return set()
    if isinstance(raw_tags, str):
        return {raw_tags}
    return {str(tag) for tag in raw_tags}


def _recency_reason(tags: set[str], updated_at: Any, now: datetime) -> ScoreReason | None:
    if tags & {"inquiry_7d", "visited_7d"}:
        return ScoreReason("recent_interaction_7d", 35)
    if tags & {"inquiry_30d", "visited_30d"}:
        return ScoreReason("recent_interaction_30d", 20)

    updated = parse_timestamp(updated_at)
    if updated is None:
        return None
    days = days_since(updated, now)
    if days <= 7:
        return ScoreReason("recently_updated_7d", 25)
    if days <= 30:
        return ScoreReason("recently_updated_30d", 12)
    return None


def _interest_reason(interest_type: Any) -> ScoreReason | None:
    interest = str(interest_type or "").lower()
    if interest == "engagement":
        return ScoreReason("interest_engagement", 25)
    if interest == "wedding":
        return ScoreReason("interest_wedding", 20)
    if interest:
        return ScoreReason("interest_other", 10)
    return None


def _purchase_reason(last_purchase_at: Any, now: datetime) -> ScoreReason | None:
    purchased = parse_timestamp(last_purchase_at)
    if purchased is None:
        return None
    days = days_since(purchased, now)
    if days <= 30:
        return ScoreReason("purchase_30d", 15)
    if days <= 90:
        return ScoreReason("purchase_90d", 10)
    if days <= 180:
        return ScoreReason("purchase_180d", 5)
    return None


def _spend_reason(total_spend: Any) -> ScoreReason | None:
    spend = coerce_spend(total_spend)
    for threshold, points, rule_id in SPEND_TIERS:
        if spend >= threshold:
            return ScoreReason(rule_id, points)
    if spend > 0:
        return ScoreReason("spend_positive", 6)
    return None


def _source_reason(source: Any) -> ScoreReason | None:
    normalized = str(source or "").lower()
    if normalized in HIGH_INTENT_SOURCES:
        return ScoreReason("source_high_intent", 10)
    if normalized in NORMAL_INTENT_SOURCES:
        return ScoreReason("source_normal_intent", 5)
    return None


def _tag_bonus_reasons(tags: set[str]) -> list[ScoreReason]:
    reasons = []
    if "ring_size_known" in tags:
        reasons.append(ScoreReason("ring_size_known", 10))
    if tags & {"requested_catalog", "followed_up"}:
        reasons.append(ScoreReason("catalog_or_follow_up", 8))
    if "appointment_booked" in tags:
        reasons.append(ScoreReason("appointment_booked", 12))
    return reasons


def compute_score(contact: Any, now: datetime | None = None) -> ScoreResult:
    """Score a contact.

    Args:
        contact: Contact model, mapping, or any object exposing tags,
            updated_at, interest_type, last_purchase_at, total_spend, source.
            Every field is optional.
        now: Reference time (naive UTC), defaults to the current time

    Returns:
        ScoreResult with total score, segment and reasons in rule order
    """
    if now is None:
        now = utcnow()

    tags = _tag_set(_attr(contact, "tags"))

    candidates = [
        _recency_reason(tags, _attr(contact, "updated_at"), now),
        _interest_reason(_attr(contact, "interest_type")),
        _purchase_reason(_attr(contact, "last_purchase_at"), now),
        _spend_reason(_attr(contact, "total_spend")),
        _source_reason(_attr(contact, "source")),
        *_tag_bonus_reasons(tags),
    ]
    reasons = tuple(reason for reason in candidates if reason is not None)
    score = sum(reason.points for reason in reasons)

    return ScoreResult(score=score, segment=segment_for_score(score), reasons=reasons)


class ScoringService:
    """Recomputes and persists contact scores."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.contact_repo = ContactRepository(session)
        self.score_repo = ScoreRepository(session)

    async def recompute(self, contact_ids: Iterable[str] | None = None) -> list[dict[str, Any]]:
        """Score contacts and upsert one score row per contact.

        Args:
            contact_ids: Contacts to score; every contact when None or empty

        Returns:
            The score rows written (contact_id, score, segment, reasons, computed_at)
        """
        contact_ids = list(contact_ids or [])
        if contact_ids:
            contacts = await self.contact_repo.list_by_ids(contact_ids)
        else:
            contacts = await self.contact_repo.list_all()

        if not contacts:
            return []

        computed_at = utcnow()
        rows = []
        for contact in contacts:
            try:
                result = compute_score(contact, now=computed_at)
            except Exception:
                logger.exception(f"Error computing score for contact {contact.id}")
                continue
            rows.append(self._to_row(contact, result, computed_at))

        await self.score_repo.upsert_many(rows)
        logger.info(f"Scored {len(rows)} of {len(contacts)} contacts")
        return rows

    async def last_computed_at(self) -> datetime | None:
        """When scores were last computed, or None if never."""
        return await self.score_repo.last_computed_at()

    @staticmethod
    def _to_row(contact: Contact, result: ScoreResult, computed_at: datetime) -> dict[str, Any]:
        return {
            "contact_id": contact.id,
            "score": result.score,
            "segment": result.segment.value,
            "reasons": result.reason_labels(),
            "computed_at": computed_at,
        }
