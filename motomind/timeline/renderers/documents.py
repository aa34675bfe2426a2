"""Document, inspection and recall cards."""

from __future__ import annotations

from ..cards import Badge, CardViewModel, DataItem, HeroMetric
from ..normalizer import CanonicalEvent, DocumentEvent, parse_timestamp
from . import EventRenderer, RenderContext
from .formatting import humanize, money, scalar_text, short_date

EXPIRY_WARNING_DAYS = 30

_INSPECTION_TITLES = {
    "safety": "Safety Inspection",
    "emissions": "Emissions Test",
    "both": "Safety & Emissions Inspection",
}


class DocumentRenderer(EventRenderer):
    event_class = DocumentEvent

    def get_title(self, event: DocumentEvent) -> str:
        return humanize(event.doc_type).title() if event.doc_type else "Document"

    def get_subtitle(self, event: DocumentEvent) -> str | None:
        return event.vendor

    def get_card_data(
        self, event: DocumentEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        context = context or RenderContext()
        items: list[DataItem] = []
        badges: list[Badge] = []
        accent = None

        if event.policy_number:
            items.append(DataItem("Policy", event.policy_number))
        coverage = scalar_text(event.lookup("coverage_type", "coverage"))
        if coverage:
            items.append(DataItem("Coverage", humanize(coverage)))

        if event.expiration is not None:
            days_left = (event.expiration - context.now).days
            expired = event.expiration < context.now
            items.append(DataItem(
                "Expires",
                short_date(event.expiration),
                highlight=expired or days_left < EXPIRY_WARNING_DAYS,
            ))
            if expired:
                badges.append(Badge("Expired", "danger"))
                accent = "danger"
            elif days_left < EXPIRY_WARNING_DAYS:
                badges.append(Badge(f"Expires in {days_left} days", "warning"))
                accent = "warning"
            else:
                badges.append(Badge(
                    f"Valid through {event.expiration.strftime('%b %Y')}", "info"
                ))

        hero = HeroMetric(money(event.total_amount), "Premium") if event.total_amount is not None else None
        return self.build_card(event, hero=hero, items=items, badges=badges, accent=accent)


def inspection_result(event: CanonicalEvent) -> str:
    result = (scalar_text(event.lookup("result")) or "pass").lower()
    match result:
        case "pass" | "passed":
            return "Passed"
        case "fail" | "failed":
            return "Failed"
        case _:
            return "Conditional"


class InspectionRenderer(EventRenderer):
    def get_title(self, event: CanonicalEvent) -> str:
        kind = (scalar_text(event.lookup("inspection_type")) or "").lower()
        return _INSPECTION_TITLES.get(kind, "Vehicle Inspection")

    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        station = scalar_text(event.lookup("station_name")) or "Inspection station"
        return f"{station} • {inspection_result(event)}"

    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        result = inspection_result(event)
        items = [DataItem("Result", result, highlight=result != "Passed")]
        certificate = scalar_text(event.lookup("certificate_number"))
        if certificate:
            items.append(DataItem("Certificate", certificate))
        expires = parse_timestamp(event.lookup("expiration_date", "next_due_date"))
        if expires:
            items.append(DataItem("Valid until", short_date(expires)))

        variant = {"Passed": "success", "Failed": "danger"}.get(result, "warning")
        hero = HeroMetric(money(event.total_amount)) if event.total_amount is not None else None
        return self.build_card(
            event,
            hero=hero,
            items=items,
            badges=[Badge(result, variant)],
            accent="danger" if result == "Failed" else None,
        )


def recall_status(event: CanonicalEvent) -> str:
    status = (scalar_text(event.lookup("status")) or "open").lower()
    return {"resolved": "Resolved", "scheduled": "Scheduled"}.get(status, "Open")


class RecallRenderer(EventRenderer):
    def get_title(self, event: CanonicalEvent) -> str:
        return "Recall Notice"

    def get_subtitle(self, event: CanonicalEvent) -> str | None:
        component = scalar_text(event.lookup("affected_component")) or "Component"
        status = recall_status(event)
        return f"{component} • {'Action required' if status == 'Open' else status}"

    def get_card_data(
        self, event: CanonicalEvent, context: RenderContext | None = None
    ) -> CardViewModel:
        severity = (scalar_text(event.lookup("severity")) or "").lower()
        status = recall_status(event)

        items: list[DataItem] = []
        recall_id = scalar_text(event.lookup("recall_id", "campaign_number"))
        if recall_id:
            items.append(DataItem("Recall ID", recall_id))
        manufacturer = scalar_text(event.lookup("manufacturer"))
        if manufacturer:
            items.append(DataItem("Issued by", manufacturer))
        remedy = scalar_text(event.lookup("remedy"))
        if remedy:
            items.append(DataItem("Remedy", remedy))

        badges: list[Badge] = []
        accent = None
        match severity:
            case "safety":
                badges.append(Badge("Safety critical", "danger"))
                accent = "danger"
            case "compliance":
                badges.append(Badge("Compliance", "warning"))
            case _:
                badges.append(Badge("Informational", "info"))
        match status:
            case "Resolved":
                badges.append(Badge("Resolved", "success"))
            case "Scheduled":
                badges.append(Badge("Scheduled", "info"))
            case _:
                badges.append(Badge("Open - action required", "warning"))
                accent = accent or "warning"

        return self.build_card(event, items=items, badges=badges, accent=accent)
