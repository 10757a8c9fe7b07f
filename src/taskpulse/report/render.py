# src/taskpulse/report/render.py

from __future__ import annotations

"""
Report rendering.

DeterministicRenderer is the source of truth: fixed structure, no external calls,
byte-identical output for identical facts. GenerativeRenderer asks an LLM to write
a livelier version of the same facts and falls back to the deterministic text on
any failure, so rendering never blocks delivery.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any, Protocol

from ..core.errors import RenderError
from ..core.models import Delta, DeltaKind, EmployeeStat, PlaceholderUser
from ..core.ports import LLMClient
from .stats import totals

logger = logging.getLogger(__name__)

TELEGRAM_MAX_CHARS = 4096

MONTHS_GENITIVE = (
    "января",
    "февраля",
    "марта",
    "апреля",
    "мая",
    "июня",
    "июля",
    "августа",
    "сентября",
    "октября",
    "ноября",
    "декабря",
)

CLOSING_LINES = (
    "Цель: сократить общее количество просрочек на 25%",
    "Если нужна помощь или перераспределение задач — пишите в чат",
    "Команда, вместе мы справимся! 💪",
)


class Tier(StrEnum):
    TOP = "top"
    MIDDLE = "middle"
    ATTENTION = "attention"


TIER_ICONS: dict[Tier, str] = {
    Tier.TOP: "🏆",
    Tier.MIDDLE: "✅",
    Tier.ATTENTION: "⚠️",
}


def tier_for(overdue_count: int) -> Tier:
    if overdue_count >= 11:
        return Tier.ATTENTION
    if overdue_count >= 4:
        return Tier.MIDDLE
    return Tier.TOP


def format_day_ru(day: date) -> str:
    return f"{day.day} {MONTHS_GENITIVE[day.month - 1]}"


_MARKDOWN_SPECIALS = ("_", "*", "`", "[")


def escape_markdown(text: str) -> str:
    """Escape user-supplied text for Telegram's legacy Markdown parse mode."""
    for ch in _MARKDOWN_SPECIALS:
        text = text.replace(ch, "\\" + ch)
    return text


@dataclass(frozen=True, slots=True)
class RenderFacts:
    """Everything a renderer may use. Built once per run."""

    day: date
    stats: tuple[EmployeeStat, ...]
    delta: Delta
    total_overdue: int
    total_no_deadline: int

    @classmethod
    def build(cls, stats: list[EmployeeStat], delta: Delta, now: datetime) -> RenderFacts:
        total_overdue, total_no_deadline = totals(stats)
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return cls(
            day=now.date(),
            stats=tuple(stats),
            delta=delta,
            total_overdue=total_overdue,
            total_no_deadline=total_no_deadline,
        )

    def to_payload(self) -> dict[str, Any]:
        """JSON-friendly view for the generative renderer."""
        tiers: dict[str, list[dict[str, Any]]] = {t.value: [] for t in Tier}
        for s in self.stats:
            tiers[tier_for(s.overdue_count).value].append(
                {
                    "name": s.user.display_name,
                    "overdue": s.overdue_count,
                    "no_deadline": s.no_deadline_count,
                    "unresolved_user": isinstance(s.user, PlaceholderUser),
                }
            )
        return {
            "date": self.day.isoformat(),
            "date_label": format_day_ru(self.day),
            "total_overdue": self.total_overdue,
            "total_no_deadline": self.total_no_deadline,
            "delta": {
                "kind": self.delta.kind.value,
                "amount": self.delta.amount,
                "percent": self.delta.percent,
                "previous_date": self.delta.previous_date,
            },
            "employees_by_tier": tiers,
        }


class Renderer(Protocol):
    def render(self, facts: RenderFacts) -> str: ...


def delta_line(delta: Delta) -> str | None:
    if delta.kind == DeltaKind.IMPROVED:
        return f"📉 Меньше, чем в прошлый раз, на {delta.amount} ({delta.percent}%)"
    if delta.kind == DeltaKind.WORSENED:
        return f"📈 Больше, чем в прошлый раз, на {delta.amount} ({delta.percent}%)"
    if delta.kind == DeltaKind.UNCHANGED:
        return "➖ Без изменений с прошлого отчета"
    return None


class DeterministicRenderer:
    """Fixed-structure Telegram Markdown report."""

    def render(self, facts: RenderFacts) -> str:
        lines: list[str] = [
            f"📊 *Отчет по задачам команды — {format_day_ru(facts.day)}*",
            "",
            f"Всего просроченных задач: {facts.total_overdue}",
        ]

        change = delta_line(facts.delta)
        if change is not None:
            lines.append(change)
        lines.append("")

        for s in facts.stats:
            icon = TIER_ICONS[tier_for(s.overdue_count)]
            lines.append(
                f"{icon} {escape_markdown(s.user.display_name)} — просроченных: {s.overdue_count}, "
                f"без сроков: {s.no_deadline_count}"
            )

        lines.append("")
        lines.extend(CLOSING_LINES)
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class Embellishments:
    positive_trends: str
    recommendations: str


DEFAULT_EMBELLISHMENTS = Embellishments(
    positive_trends="Команда продолжает держать задачи под контролем.",
    recommendations="Начните день с самых старых просроченных задач и назначьте сроки задачам без дедлайна.",
)

EMBELLISH_SYSTEM_PROMPT = """
You write short remarks for a daily team task report in Russian.

Input: JSON with overdue statistics per employee and the change since the previous report.

Reply with a single JSON object and nothing else:
{"positive_trends": "...", "recommendations": "..."}

Rules:
- Each value is one or two sentences in Russian.
- Be supportive, never blame individual people.
- Do not invent numbers that are not in the input.
""".strip()

REPORT_SYSTEM_PROMPT = """
You format a daily team task report for a Telegram group chat (Markdown parse mode).

Input: JSON with the report date, totals, the change since the previous report,
employees grouped by tier, and two short remarks (positive_trends, recommendations).

Formatting rules:
- Write in Russian.
- First line: "📊 *Отчет по задачам команды — <date_label>*".
- Then the total number of overdue tasks and, if present, the change since the previous report.
- Then one line per employee, grouped by tier: top = 🏆, middle = ✅, attention = ⚠️.
  Each line: "<icon> <name> — просроченных: <overdue>, без сроков: <no_deadline>".
- Use every number exactly as given. Do not add or drop employees.
- Then the positive trends and the recommendations, one short paragraph each.
- End with: the goal to reduce overdue tasks by 25%, an invitation to ask for help in the chat,
  and a short team cheer.
- Use only *bold* and _italic_ Markdown. No headings, no tables, no code blocks.
- Stay under 3500 characters.
""".strip()


def _strip_fences(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        s = s.split("\n", 1)[1] if "\n" in s else ""
        if s.rstrip().endswith("```"):
            s = s.rstrip()[:-3]
    return s.strip()


class GenerativeRenderer:
    """
    LLM-written report with the deterministic renderer as its fallback.

    render() never raises: try_render() failures (LLM errors, empty text, text that is
    too long for a chat message or lost the headline number) fall back to `fallback`.
    """

    def __init__(
        self,
        llm: LLMClient,
        fallback: Renderer | None = None,
        *,
        max_chars: int = TELEGRAM_MAX_CHARS,
        embellish: bool = True,
    ) -> None:
        self._llm = llm
        self._fallback: Renderer = fallback or DeterministicRenderer()
        self._max_chars = int(max_chars)
        self._embellish = embellish

    def embellishments(self, facts: RenderFacts) -> Embellishments:
        """Short remarks for the report; defaults whenever the LLM does not deliver."""
        if not self._embellish:
            return DEFAULT_EMBELLISHMENTS

        try:
            raw = self._llm.generate(EMBELLISH_SYSTEM_PROMPT, json.dumps(facts.to_payload(), ensure_ascii=False))
        except Exception as e:
            logger.warning("Embellishment call failed (%s); using defaults", e.__class__.__name__)
            return DEFAULT_EMBELLISHMENTS

        try:
            data = json.loads(_strip_fences(raw or ""))
        except ValueError:
            logger.info("Embellishment output is not JSON; using defaults")
            return DEFAULT_EMBELLISHMENTS
        if not isinstance(data, dict):
            return DEFAULT_EMBELLISHMENTS

        def _pick(key: str, default: str) -> str:
            v = data.get(key)
            return v.strip() if isinstance(v, str) and v.strip() else default

        return Embellishments(
            positive_trends=_pick("positive_trends", DEFAULT_EMBELLISHMENTS.positive_trends),
            recommendations=_pick("recommendations", DEFAULT_EMBELLISHMENTS.recommendations),
        )

    def try_render(self, facts: RenderFacts) -> str:
        extras = self.embellishments(facts)
        payload = facts.to_payload()
        payload["positive_trends"] = extras.positive_trends
        payload["recommendations"] = extras.recommendations

        try:
            raw = self._llm.generate(REPORT_SYSTEM_PROMPT, json.dumps(payload, ensure_ascii=False))
        except Exception as e:
            raise RenderError(f"LLM call failed: {e.__class__.__name__}") from e

        text = _strip_fences(raw or "")
        if not text:
            raise RenderError("LLM returned an empty report")
        if len(text) > self._max_chars:
            raise RenderError(f"LLM report is too long ({len(text)} > {self._max_chars} chars)")
        if str(facts.total_overdue) not in text:
            raise RenderError("LLM report does not mention the overdue total")
        return text

    def render(self, facts: RenderFacts) -> str:
        try:
            text = self.try_render(facts)
        except RenderError as e:
            logger.warning("Generative rendering failed, using the standard report: %s", e)
            return self._fallback.render(facts)
        logger.info("Report rendered by LLM (%d chars)", len(text))
        return text
