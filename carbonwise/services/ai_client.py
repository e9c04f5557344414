"""
CarbonWise – AI Insight Adapter
================================
Asks a local Ollama model for a carbon-insight JSON document and maps the
reply onto ``InsightPayload``.

  probe  → GET {ollama_url}/api/tags            (5 s timeout)
  chat   → POST {ollama_url}/v1/chat/completions (OpenAI-compatible endpoint)

Nothing in here raises to the caller: every failure comes back as an
``AIUnavailable`` value carrying a reason tag, and the orchestrator falls
back to the rule engine.
"""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

import httpx
import openai
from loguru import logger
from openai import AsyncOpenAI

from carbonwise.api.schemas.insights import (
    InsightPayload,
    InsightRecord,
    TopInsight,
    TrendSchema,
    WeeklyChallenge,
)
from carbonwise.config import settings
from carbonwise.core.exceptions import AIResponseError, AIServiceError, AIServiceTimeout
from carbonwise.features.emission_calculator import normalize_category
from carbonwise.features.extractor import FeatureVector
from carbonwise.features.trend_detector import TrendRecord

# ─────────────────────────────────────────────────────────────────────────────
# Backend interface
# ─────────────────────────────────────────────────────────────────────────────

class TextGenerationBackend(Protocol):
    """Anything that can answer a health probe and a single chat completion."""

    model: str

    async def probe(self) -> bool: ...

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str: ...


class OllamaBackend:
    """Ollama over its OpenAI-compatible ``/v1`` API."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        probe_timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.ollama_url).rstrip("/")
        self.model = model or settings.ollama_model
        self.timeout = timeout or settings.ollama_timeout
        self.probe_timeout = probe_timeout or settings.ollama_probe_timeout
        # Ollama ignores the key, the client just insists on one
        self._client = AsyncOpenAI(
            base_url=f"{self.base_url}/v1",
            api_key="ollama",
            timeout=self.timeout,
            max_retries=0,
        )

    async def probe(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.probe_timeout) as client:
                response = await client.get(f"{self.base_url}/api/tags")
            return response.is_success
        except httpx.HTTPError as exc:
            logger.info("Ollama not available at {}: {}", self.base_url, exc)
            return False

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    stream=False,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            raise AIServiceTimeout(f"Ollama request timed out after {self.timeout:.0f}s") from exc
        except openai.OpenAIError as exc:
            raise AIServiceError(f"Ollama API error: {exc}") from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


# ─────────────────────────────────────────────────────────────────────────────
# Prompt construction
# ─────────────────────────────────────────────────────────────────────────────

GLOBAL_AVG_MONTHLY_KG = 400

# rough $ saved per kg CO2 avoided
COST_PER_KG = {
    "transport":   0.15,
    "electricity": 0.08,
    "diet":        0.10,
    "waste":       0.05,
}

SYSTEM_PROMPT = """You are a data-driven carbon analyst. Zero fluff. Math only.

OUTPUT RULES:
1. Show exact math: "X trips × Y kg = Z total → cut A = save B kg"
2. Compare to average: "You're at X%, average person is 400 kg/month"
3. Include weekly challenge: one specific thing to try THIS WEEK
4. Add cost savings: "Save X kg = save ~$Y/month"
5. ONE insight per category - highest ROI action only
6. Never invent data - use ONLY numbers provided below
7. Never say "consider" or "you could" - give direct commands

Reply with a single JSON object and nothing else:
{
    "summary": "[X kg this month] = [Y]% of average. [One sentence verdict]",
    "topInsight": {
        "title": "[VERB] [specific action]",
        "description": "[Math breakdown] → [Exact savings in kg AND $]",
        "category": "transport|electricity|diet|waste",
        "potentialSavings": [number],
        "weeklySavings": [number / 4]
    },
    "insights": [
        {
            "title": "[VERB] [specific action]",
            "description": "[Current usage] × [factor] = [total] → [action] = [savings]",
            "category": "transport|electricity|diet|waste",
            "potentialSavings": [number]
        }
    ],
    "weeklyChallenge": {
        "title": "This week: [specific challenge]",
        "description": "[Exactly what to do] - target: [measurable goal]",
        "targetSavings": [number]
    },
    "encouragement": "[Fact-based motivator with number]"
}"""


def _category_breakdown(f: FeatureVector) -> str:
    lines: list[str] = []
    if f.transport_emissions > 0:
        per_trip = f.transport_emissions / f.car_trips if f.car_trips else 0.0
        cut = f.transport_emissions * 0.3
        lines += [
            f"TRANSPORT: {f.transport_emissions:.1f} kg",
            f"  - {f.car_trips} car trips × {per_trip:.1f} kg/trip = {f.transport_emissions:.1f} kg",
            f"  - {f.public_transit_trips} transit trips (low emission)",
            f"  - MAX CUT: Replace 2 car trips with transit/bike → save {cut:.1f} kg "
            f"(~${cut * COST_PER_KG['transport']:.0f}/month)",
        ]
    if f.electricity_emissions > 0:
        cut = f.electricity_emissions * 0.2
        lines += [
            f"ELECTRICITY: {f.electricity_emissions:.1f} kg",
            f"  - {f.electricity_usage:g} kWh, energy source: {f.energy_source}",
            f"  - MAX CUT: Reduce usage 20% → save {cut:.1f} kg "
            f"(~${cut * COST_PER_KG['electricity']:.0f}/month)",
        ]
    if f.heating_emissions > 0:
        lines += [
            f"HEATING: {f.heating_emissions:.1f} kg",
            f"  - MAX CUT: Lower thermostat 1°C → save {f.heating_emissions * 0.1:.1f} kg",
        ]
    if f.diet_emissions > 0:
        cut = f.diet_emissions * 0.25
        lines += [
            f"DIET: {f.diet_emissions:.1f} kg",
            f"  - Diet type: {f.diet_type}",
            f"  - MAX CUT: 2 meatless days/week → save {cut:.1f} kg "
            f"(~${cut * COST_PER_KG['diet']:.0f}/month)",
        ]
    if f.waste_emissions > 0:
        lines += [
            f"WASTE: {f.waste_emissions:.1f} kg",
            f"  - MAX CUT: Compost food scraps → save {f.waste_emissions * 0.3:.1f} kg",
        ]
    return "\n".join(lines)


def build_prompt(
    features: FeatureVector,
    trends: Iterable[TrendRecord] = (),
    goals: Iterable[dict[str, Any]] = (),
) -> str:
    """User message for the completion.  Every number comes from the arguments."""
    total = features.total_emissions
    vs_avg = round(total / GLOBAL_AVG_MONTHLY_KG * 100) if total > 0 else 0
    status = (
        "ABOVE average - needs reduction"
        if total > GLOBAL_AVG_MONTHLY_KG
        else "BELOW average - good, optimize further"
    )

    parts = ["ANALYZE THIS USER'S CARBON DATA:"]
    if not features.has_any_data:
        parts.append("USER HAS NO DATA. Response: Tell them to log 3 activities to get insights.")
    parts += [
        "",
        "TOTALS:",
        f"- Monthly emissions: {total:.1f} kg CO₂",
        f"- vs Global average: {vs_avg}% (average = {GLOBAL_AVG_MONTHLY_KG} kg/month)",
        f"- Status: {status}",
        f"- Activities logged: {features.activity_count}",
    ]

    breakdown = _category_breakdown(features)
    if breakdown:
        parts += ["", breakdown]

    trend_lines = [
        f"- {t.category}: {t.change_percent:+d}% week over week ({t.last_week:.1f} → {t.this_week:.1f} kg)"
        for t in trends
    ]
    if trend_lines:
        parts += ["", "TRENDS:", *trend_lines]

    goal_lines = [
        f"- {g['title']} ({g['type']}): {g['current_value']:.1f} / {g['target_value']:.1f}"
        for g in goals
    ]
    if goal_lines:
        parts += ["", "ACTIVE GOALS:", *goal_lines]

    categories = ", ".join(features.categories_with_data) or "NONE"
    parts += [
        "",
        "TASK:",
        "1. Summary with exact % comparison",
        "2. Top insight = highest kg category with exact math",
        "3. One insight per other category (if data exists)",
        "4. Weekly challenge = one specific thing to try this week",
        "5. Use ONLY the numbers above - do not invent",
        "",
        f"Categories with data: {categories}",
    ]
    return "\n".join(parts)


# ─────────────────────────────────────────────────────────────────────────────
# Reply parsing
# ─────────────────────────────────────────────────────────────────────────────

def _balanced_end(text: str, start: int) -> int | None:
    """Index just past the brace closing ``text[start]``, honouring JSON strings."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Pull the first balanced ``{...}`` that parses as a JSON object out of
    free text (models like to wrap JSON in prose or code fences).

    Raises:
        AIResponseError: when no such object exists.
    """
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end is None:
            break
        try:
            candidate = json.loads(text[start:end])
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            return candidate
        start = text.find("{", start + 1)
    raise AIResponseError("No JSON object found in AI response")


_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def _as_float(value: Any, default: float = 0.0) -> float:
    """Models write numbers as 12, "12", or "~12 kg"; take the first number seen."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER.search(value.replace(",", ""))
        if match:
            return float(match.group())
    return default


def _pick(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _category(value: Any) -> str:
    return normalize_category(_text(value)) or "general"


def normalize_ai_response(
    data: dict[str, Any],
    *,
    model: str | None = None,
    trends: Iterable[TrendRecord] = (),
) -> InsightPayload:
    """
    Map a parsed reply onto ``InsightPayload``.

    Keys are accepted in camelCase or snake_case.  Insights are deduplicated
    per category, first occurrence wins.

    Raises:
        AIResponseError: when the reply has no usable summary.
    """
    summary = _text(data.get("summary"))
    if not summary:
        raise AIResponseError("AI response has no summary")

    records: list[InsightRecord] = []
    seen: set[str] = set()
    raw_insights = data.get("insights")
    for item in raw_insights if isinstance(raw_insights, list) else []:
        if not isinstance(item, dict):
            continue
        category = _category(item.get("category"))
        title = _text(item.get("title"))
        if category in seen or not title:
            continue
        seen.add(category)
        records.append(InsightRecord(
            id=f"ai-{category}",
            title=title,
            description=_text(item.get("description")),
            category=category,
            potential_savings=round(_as_float(_pick(item, "potentialSavings", "potential_savings")), 1),
            priority=max(1, 10 - len(records)),
        ))

    top_insight = None
    raw_top = _pick(data, "topInsight", "top_insight")
    if isinstance(raw_top, dict) and _text(raw_top.get("title")):
        weekly = _pick(raw_top, "weeklySavings", "weekly_savings")
        top_insight = TopInsight(
            title=_text(raw_top.get("title")),
            description=_text(raw_top.get("description")),
            category=_category(raw_top.get("category")),
            potential_savings=round(_as_float(_pick(raw_top, "potentialSavings", "potential_savings")), 1),
            weekly_savings=round(_as_float(weekly), 1) if weekly is not None else None,
        )

    weekly_challenge = None
    raw_challenge = _pick(data, "weeklyChallenge", "weekly_challenge")
    if isinstance(raw_challenge, dict) and _text(raw_challenge.get("title")):
        target = _pick(raw_challenge, "targetSavings", "target_savings")
        weekly_challenge = WeeklyChallenge(
            title=_text(raw_challenge.get("title")),
            description=_text(raw_challenge.get("description")),
            target_savings=_as_float(target) if target is not None else None,
        )

    return InsightPayload(
        source="ai",
        model=model,
        summary=summary,
        top_insight=top_insight,
        insights=records,
        trends=[TrendSchema(**t.to_dict()) for t in trends],
        encouragement=_text(data.get("encouragement")),
        weekly_challenge=weekly_challenge,
        generated_at=datetime.now(timezone.utc),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Adapter
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AIUnavailable:
    """Why the AI path produced nothing: disabled | probe_failed | timeout | error | invalid_response."""

    reason: str
    detail: str = ""


class AIInsightAdapter:
    """Probe, prompt, parse, normalise.  Returns a payload or an ``AIUnavailable``."""

    def __init__(
        self,
        backend: TextGenerationBackend | None,
        *,
        enabled: bool | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self.backend = backend
        self.enabled = settings.ai_insights_enabled if enabled is None else enabled
        self.temperature = settings.ollama_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.ollama_max_tokens

    async def request_ai_insights(
        self,
        features: FeatureVector,
        trends: Iterable[TrendRecord] = (),
        goals: Iterable[dict[str, Any]] = (),
    ) -> InsightPayload | AIUnavailable:
        if not self.enabled or self.backend is None:
            return AIUnavailable("disabled")

        try:
            reachable = await self.backend.probe()
        except Exception as exc:
            logger.warning("AI backend reachability check raised: {}", exc)
            return AIUnavailable("probe_failed", str(exc))
        if not reachable:
            return AIUnavailable("probe_failed")

        trends = list(trends)
        prompt = build_prompt(features, trends, goals)
        try:
            raw = await self.backend.complete(
                prompt,
                system_prompt=SYSTEM_PROMPT,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            payload = normalize_ai_response(
                extract_json_object(raw), model=self.backend.model, trends=trends
            )
        except AIServiceTimeout as exc:
            logger.warning("⏱️ AI insight request timed out: {}", exc)
            return AIUnavailable("timeout", str(exc))
        except AIResponseError as exc:
            logger.warning("AI insight reply unusable: {}", exc)
            return AIUnavailable("invalid_response", str(exc))
        except AIServiceError as exc:
            logger.error("AI insight request failed: {}", exc)
            return AIUnavailable("error", str(exc))
        except Exception as exc:
            logger.exception("Unexpected AI backend failure: {}", exc)
            return AIUnavailable("error", str(exc))

        logger.info("🤖 AI insights generated | model={} | insights={}", payload.model, len(payload.insights))
        return payload
