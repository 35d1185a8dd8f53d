"""
Deal Health Orchestrator

Derives momentum, stalling and ghosting signals per open deal and turns them
into ranked hot leads, risks and suggested actions.
"""

import logging
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from dealgraph.models.entities import (
    Deal,
    DealStage,
    Interaction,
    InteractionType,
)
from dealgraph.models.influence import round_half_up
from dealgraph.models.store import EntityStore

logger = logging.getLogger(__name__)


class TelemetryEventType(str, Enum):
    """Engagement events reported by email/document/calendar trackers."""
    EMAIL_OPEN = "email_open"
    EMAIL_CLICK = "email_click"
    LINK_CLICK = "link_click"
    DOCUMENT_VIEW = "document_view"
    CALENDAR_ACCEPTED = "calendar_accepted"


class TelemetryEvent(BaseModel):
    """One engagement event tied to a deal."""
    deal_id: str
    type: TelemetryEventType
    timestamp: datetime
    url: str = ""
    label: str = ""

    @property
    def is_pricing(self) -> bool:
        text = f"{self.url} {self.label}".lower()
        return "pricing" in text or "price" in text


class MomentumSignal(BaseModel):
    email_opens: int = 0
    email_clicks: int = 0
    pricing_clicks: int = 0
    proposal_opens: int = 0
    meeting_accepted: bool = False

    @property
    def has_momentum(self) -> bool:
        return (
            self.email_opens > 2
            or self.email_clicks > 0
            or self.pricing_clicks > 1
            or self.proposal_opens > 0
            or self.meeting_accepted
        )


class StallingSignal(BaseModel):
    is_stalling: bool = False
    days_in_stage: int = 0
    threshold: float = 0.0
    stage: DealStage = DealStage.NEW
    average_days: float = 0.0


class GhostingSignal(BaseModel):
    is_ghosting: bool = False
    last_contact_days: int = 0


class DealHealth(BaseModel):
    """All signals for one deal."""
    deal: Deal
    momentum: MomentumSignal
    stalling: StallingSignal
    ghosting: GhostingSignal
    urgency_score: int = Field(ge=1, le=10)


class HotLead(BaseModel):
    deal_id: str
    lead_name: str
    signal_reason: str
    urgency_score: int


class DealRisk(BaseModel):
    deal_id: str
    deal_name: str
    deal_value: float
    issue: str
    suggested_fix: str


class SmartAction(BaseModel):
    deal_id: str
    action_type: str
    target_name: str
    rationale: str
    draft_content: str


class AnalysisReport(BaseModel):
    """Fixed-size presentation lists for the dashboard."""
    generated_at: datetime = Field(default_factory=datetime.now)
    hot_leads: list[HotLead] = Field(default_factory=list)
    risks: list[DealRisk] = Field(default_factory=list)
    smart_actions: list[SmartAction] = Field(default_factory=list)


class DealHealthOrchestrator:
    """Analyzes open deals from interaction history and telemetry."""

    DEFAULT_STAGE_DAYS = {
        DealStage.NEW: 3,
        DealStage.CONTACTED: 5,
        DealStage.QUALIFIED: 7,
        DealStage.PROPOSAL: 10,
        DealStage.NEGOTIATION: 14,
        DealStage.CLOSED: 0,
    }

    CONTACT_TYPES = (InteractionType.CALL, InteractionType.EMAIL, InteractionType.MEETING)

    NO_CONTACT_DAYS = 999

    def __init__(
        self,
        store: EntityStore,
        stage_days: Optional[dict[str, float]] = None,
        default_stage_days: float = 7,
        stalling_multiplier: float = 1.5,
        ghosting_days: int = 7,
        momentum_window_hours: int = 24,
        high_value_threshold: float = 200_000,
        max_hot_leads: int = 5,
        max_risks: int = 5,
        max_actions: int = 5,
        max_actions_per_deal: int = 3,
    ):
        """Initialize orchestrator.

        Args:
            store: Store holding deals, contacts and interactions
            stage_days: Average days per stage, overriding the defaults
            default_stage_days: Average for stages without an entry
            stalling_multiplier: Stalling once days in stage exceed avg * this
            ghosting_days: Ghosting once the last contact is older than this
            momentum_window_hours: Window for telemetry signals
            high_value_threshold: Deal value that earns an urgency point
            max_hot_leads: Size of the hot leads list
            max_risks: Size of the risks list
            max_actions: Size of the smart actions list
            max_actions_per_deal: Actions kept per deal
        """
        self.store = store
        self.stage_days = dict(self.DEFAULT_STAGE_DAYS)
        if stage_days:
            for key, value in stage_days.items():
                try:
                    self.stage_days[DealStage(key)] = value
                except ValueError:
                    logger.warning(f"Unknown deal stage: {key}")
        self.default_stage_days = default_stage_days
        self.stalling_multiplier = stalling_multiplier
        self.ghosting_days = ghosting_days
        self.momentum_window_hours = momentum_window_hours
        self.high_value_threshold = high_value_threshold
        self.max_hot_leads = max_hot_leads
        self.max_risks = max_risks
        self.max_actions = max_actions
        self.max_actions_per_deal = max_actions_per_deal

    def average_stage_days(self, stage: DealStage) -> float:
        return self.stage_days.get(stage, self.default_stage_days)

    def deal_activities(self, deal: Deal) -> list[Interaction]:
        """Interactions logged against the deal or its deal-role contacts."""
        contact_ids = {
            e.source for e in self.store.iter_edges()
            if e.target == deal.id and e.type.is_deal_role
        }
        return [
            i for i in self.store.interactions
            if i.deal_id == deal.id or (i.deal_id is None and i.contact_id in contact_ids)
        ]

    def deal_contact_names(self, deal: Deal) -> list[str]:
        """Names of the deal's contacts, most influential first."""
        contacts = []
        for edge in self.store.iter_edges():
            if edge.target == deal.id and edge.type.is_deal_role:
                contact = self.store.find_contact(edge.source)
                if contact is not None:
                    contacts.append(contact)
        contacts.sort(key=lambda c: c.influence_score, reverse=True)
        return [c.name for c in contacts]

    def days_in_stage(self, deal: Deal, now: Optional[datetime] = None) -> int:
        if deal.is_closed:
            return 0
        now = now or datetime.now()
        entered = deal.stage_entered_at or deal.last_activity or now
        return max(math.floor((now - entered).total_seconds() / 86400), 0)

    def last_contact_days(
        self,
        deal: Deal,
        activities: list[Interaction],
        now: Optional[datetime] = None,
    ) -> int:
        """Whole days since the last call, email or meeting.

        A deal with no logged activity at all falls back to last_activity.
        """
        now = now or datetime.now()

        if not activities:
            if deal.last_activity:
                return math.floor((now - deal.last_activity).total_seconds() / 86400)
            return self.NO_CONTACT_DAYS

        contact_dates = [a.date for a in activities if a.type in self.CONTACT_TYPES]
        if not contact_dates:
            return self.NO_CONTACT_DAYS

        return math.floor((now - max(contact_dates)).total_seconds() / 86400)

    def detect_momentum(
        self,
        deal: Deal,
        telemetry: list[TelemetryEvent],
        now: Optional[datetime] = None,
    ) -> MomentumSignal:
        now = now or datetime.now()
        cutoff = now - timedelta(hours=self.momentum_window_hours)
        recent = [
            e for e in telemetry
            if e.deal_id == deal.id and e.timestamp >= cutoff
        ]

        clicks = [
            e for e in recent
            if e.type in (TelemetryEventType.EMAIL_CLICK, TelemetryEventType.LINK_CLICK)
        ]

        return MomentumSignal(
            email_opens=sum(1 for e in recent if e.type == TelemetryEventType.EMAIL_OPEN),
            email_clicks=sum(1 for e in recent if e.type == TelemetryEventType.EMAIL_CLICK),
            pricing_clicks=sum(1 for e in clicks if e.is_pricing),
            proposal_opens=sum(1 for e in recent if e.type == TelemetryEventType.DOCUMENT_VIEW),
            meeting_accepted=any(e.type == TelemetryEventType.CALENDAR_ACCEPTED for e in recent),
        )

    def detect_stalling(self, deal: Deal, now: Optional[datetime] = None) -> StallingSignal:
        days = self.days_in_stage(deal, now)
        average = self.average_stage_days(deal.stage)
        threshold = average * self.stalling_multiplier

        return StallingSignal(
            is_stalling=not deal.is_closed and days > threshold,
            days_in_stage=days,
            threshold=threshold,
            stage=deal.stage,
            average_days=average,
        )

    def detect_ghosting(
        self,
        deal: Deal,
        activities: list[Interaction],
        now: Optional[datetime] = None,
    ) -> GhostingSignal:
        days = self.last_contact_days(deal, activities, now)
        return GhostingSignal(
            is_ghosting=not deal.is_closed and days > self.ghosting_days,
            last_contact_days=days,
        )

    def urgency_score(
        self,
        deal: Deal,
        momentum: MomentumSignal,
        stalling: StallingSignal,
        ghosting: GhostingSignal,
    ) -> int:
        """Urgency in [1, 10]."""
        score = 1 + math.floor(deal.probability / 10)

        if momentum.has_momentum:
            score += momentum.email_opens * 0.5
            score += momentum.pricing_clicks * 1
            score += momentum.proposal_opens * 1.5

        if stalling.is_stalling:
            score += min(stalling.days_in_stage / 10, 3)

        if ghosting.is_ghosting:
            score += min(ghosting.last_contact_days / 7, 2)

        if deal.value > self.high_value_threshold:
            score += 1

        return min(max(round_half_up(score), 1), 10)

    def assess(
        self,
        deal: Deal,
        telemetry: Optional[list[TelemetryEvent]] = None,
        now: Optional[datetime] = None,
    ) -> DealHealth:
        """All signals and the urgency score for one deal."""
        now = now or datetime.now()
        activities = self.deal_activities(deal)

        momentum = self.detect_momentum(deal, telemetry or [], now)
        stalling = self.detect_stalling(deal, now)
        ghosting = self.detect_ghosting(deal, activities, now)

        return DealHealth(
            deal=deal,
            momentum=momentum,
            stalling=stalling,
            ghosting=ghosting,
            urgency_score=self.urgency_score(deal, momentum, stalling, ghosting),
        )

    def _signal_reason(self, momentum: MomentumSignal) -> str:
        window = self.momentum_window_hours
        if momentum.proposal_opens > 0:
            return f"Opened proposal {momentum.proposal_opens}x in last {window} hours"
        if momentum.pricing_clicks > 0:
            return f"Clicked pricing page {momentum.pricing_clicks}x"
        if momentum.email_opens > 2:
            return f"Opened {momentum.email_opens} emails in last {window} hours"
        if momentum.email_clicks > 0:
            return f"Clicked email links {momentum.email_clicks}x in last {window} hours"
        if momentum.meeting_accepted:
            return "Accepted a meeting invite"
        return ""

    def _risks(self, health: DealHealth) -> list[DealRisk]:
        deal, stalling, ghosting = health.deal, health.stalling, health.ghosting
        risks = []

        if stalling.is_stalling:
            risks.append(DealRisk(
                deal_id=deal.id,
                deal_name=deal.name,
                deal_value=deal.value,
                issue=(
                    f"Stuck in {stalling.stage.value} stage for {stalling.days_in_stage} days "
                    f"(avg: {stalling.average_days:g} days)"
                ),
                suggested_fix=(
                    "Send break-up email to re-engage or close"
                    if stalling.days_in_stage > 20
                    else "Schedule call to identify blockers"
                ),
            ))

        if ghosting.is_ghosting:
            risks.append(DealRisk(
                deal_id=deal.id,
                deal_name=deal.name,
                deal_value=deal.value,
                issue=f"No contact in {ghosting.last_contact_days} days - deal going cold",
                suggested_fix=(
                    "Send break-up email"
                    if ghosting.last_contact_days > 14
                    else "Reach out via LinkedIn or email"
                ),
            ))

        return risks

    def smart_actions(self, health: DealHealth) -> list[SmartAction]:
        """Up to max_actions_per_deal next steps for one deal."""
        deal = health.deal
        momentum, stalling, ghosting = health.momentum, health.stalling, health.ghosting

        names = self.deal_contact_names(deal)
        target = names[0] if names else "the team"
        greeting = target.split()[0] if names else "there"

        actions = []

        def add(action_type: str, rationale: str, draft: str) -> None:
            actions.append(SmartAction(
                deal_id=deal.id,
                action_type=action_type,
                target_name=target,
                rationale=rationale,
                draft_content=draft,
            ))

        if momentum.has_momentum:
            if momentum.proposal_opens > 0:
                add(
                    "EMAIL",
                    "Proposal was opened - follow up to answer questions and move forward",
                    f"Hi {greeting}, I noticed you opened the proposal. I'd love to discuss "
                    f"any questions you have and help move this forward. Are you available "
                    f"for a quick call this week?",
                )
            elif momentum.pricing_clicks > 0:
                add(
                    "EMAIL",
                    "Pricing page was viewed - they're evaluating cost",
                    f"Hi {greeting}, I see you checked out our pricing. I'd be happy to "
                    f"discuss custom options that might work better for your needs. "
                    f"Can we schedule a call?",
                )
            elif momentum.email_opens > 2:
                add(
                    "CALL",
                    "High email engagement - they're actively reading your messages",
                    "Schedule a call to capitalize on their interest",
                )

        if ghosting.is_ghosting:
            add(
                "EMAIL",
                f"No contact in {ghosting.last_contact_days} days - send break-up email to re-engage",
                f"Hi {greeting}, I wanted to check in one last time. If you're no longer "
                f"interested, I completely understand - just let me know. If you are still "
                f"considering us, I'd love to discuss how we can help.",
            )
            if deal.probability > 50:
                add(
                    "LINKEDIN",
                    "High-probability deal going cold - try LinkedIn outreach",
                    "Send a personalized LinkedIn message to re-engage",
                )

        if stalling.is_stalling:
            add(
                "CALL",
                f"Stuck in {stalling.stage.value} for {stalling.days_in_stage} days - need to unblock",
                f"Schedule a call to identify blockers and move {deal.name} forward",
            )

        if not actions and not deal.is_closed and ghosting.last_contact_days > 3:
            add(
                "EMAIL",
                "Regular follow-up to maintain momentum",
                f"Hi {greeting}, I wanted to check in on {deal.name}. "
                f"How are things progressing on your end?",
            )

        return actions[:self.max_actions_per_deal]

    def analyze(
        self,
        telemetry: Optional[list[TelemetryEvent]] = None,
        deals: Optional[list[Deal]] = None,
        now: Optional[datetime] = None,
    ) -> AnalysisReport:
        """Rank hot leads, risks and actions across open deals.

        Args:
            telemetry: Engagement events for any deals
            deals: Deals to analyze (default: every deal in the store)
            now: Reference time

        Returns:
            AnalysisReport with each list truncated to its configured size
        """
        now = now or datetime.now()
        telemetry = telemetry or []
        deals = self.store.deals() if deals is None else deals
        open_deals = [d for d in deals if not d.is_closed]

        hot_leads: list[HotLead] = []
        risks: list[DealRisk] = []
        actions: list[SmartAction] = []

        for deal in open_deals:
            health = self.assess(deal, telemetry, now)

            if health.momentum.has_momentum:
                reason = self._signal_reason(health.momentum)
                hot_leads.append(HotLead(
                    deal_id=deal.id,
                    lead_name=deal.name,
                    signal_reason=reason,
                    urgency_score=health.urgency_score,
                ))

            risks.extend(self._risks(health))
            actions.extend(self.smart_actions(health))

        hot_leads.sort(key=lambda h: h.urgency_score, reverse=True)
        risks.sort(key=lambda r: r.deal_value, reverse=True)

        logger.info(
            f"Analyzed {len(open_deals)} open deals: {len(hot_leads)} hot, "
            f"{len(risks)} risks, {len(actions)} actions"
        )

        return AnalysisReport(
            generated_at=now,
            hot_leads=hot_leads[:self.max_hot_leads],
            risks=risks[:self.max_risks],
            smart_actions=actions[:self.max_actions],
        )
