"""Display-ready card view models."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from .layout import grid_rows

BADGE_VARIANTS = ("success", "warning", "danger", "info")

_BADGE_ICONS = {
    "success": "✓",
    "warning": "!",
    "danger": "✗",
    "info": "i",
}


@dataclass(frozen=True)
class DataItem:
    label: str
    value: str
    highlight: bool = False


@dataclass(frozen=True)
class Badge:
    text: str
    variant: str = "info"


@dataclass(frozen=True)
class HeroMetric:
    value: str
    subtext: str | None = None


@dataclass(frozen=True)
class AISummary:
    text: str
    confidence: float | None = None


@dataclass(frozen=True)
class ExtractionWarning:
    type: str
    message: str
    action: str | None = None


@dataclass(frozen=True)
class SourceImage:
    url: str
    thumbnail_url: str = ""
    alt: str = ""


@dataclass(frozen=True)
class CardViewModel:
    """One rendered timeline event. Built fresh per render, never mutated."""

    title: str
    subtitle: str | None = None
    hero: HeroMetric | None = None
    data_items: tuple[DataItem, ...] = ()
    badges: tuple[Badge, ...] = ()
    ai_summary: AISummary | None = None
    warnings: tuple[ExtractionWarning, ...] = ()
    accent: str | None = None  # None, "warning" or "danger"
    compact: bool = False
    layout: str = "list"
    source_image: SourceImage | None = None

    @property
    def highlighted(self) -> tuple[DataItem, ...]:
        return tuple(item for item in self.data_items if item.highlight)

    def to_dict(self) -> dict:
        return asdict(self)

    def display(self) -> str:
        """Format the card for terminal display."""
        lines: list[str] = []
        marker = {"danger": "‼ ", "warning": "! "}.get(self.accent or "", "")
        lines.append(f"{marker}{self.title}")
        if self.subtitle:
            lines.append(f"  {self.subtitle}")

        if self.hero:
            hero = f"  {self.hero.value}"
            if self.hero.subtext:
                hero += f"  ({self.hero.subtext})"
            lines.append(hero)

        if self.data_items:
            lines.append("")
            if self.layout == "grid":
                for row in grid_rows(self.data_items):
                    cells = [_cell(item) for item in row if item is not None]
                    lines.append("  " + "".join(f"{c:<32}" for c in cells).rstrip())
            else:
                for item in self.data_items:
                    lines.append(f"  {_cell(item)}")

        if self.badges:
            lines.append("")
            lines.append(
                "  " + "  ".join(
                    f"[{_BADGE_ICONS.get(b.variant, '·')} {b.text}]" for b in self.badges
                )
            )

        for warning in self.warnings:
            text = f"  ⚠ {warning.message}"
            if warning.action:
                text += f" → {warning.action}"
            lines.append(text)

        if self.ai_summary:
            lines.append("")
            summary = f"  AI: {self.ai_summary.text}"
            if self.ai_summary.confidence is not None:
                summary += f" ({self.ai_summary.confidence:.0%})"
            lines.append(summary)

        if self.source_image:
            lines.append(f"  📷 {self.source_image.url}")

        return "\n".join(lines)


def _cell(item: DataItem) -> str:
    text = f"{item.label}: {item.value}"
    return f"*{text}" if item.highlight else text
