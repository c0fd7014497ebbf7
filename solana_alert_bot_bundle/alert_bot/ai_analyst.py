# solana_alert_bot_bundle/alert_bot/ai_analyst.py
"""
AI narrative analyst.

Two HTTP providers over aiohttp:
- Gemini ``generateContent`` (primary)
- Groq OpenAI-compatible chat completions (fallback)

Fallback chain
--------------
The primary gets up to ``max_attempts`` tries. A rate limit is retried after the
delay the provider asks for (``retry in Ns`` + 1s). Without a hint it backs off
exponentially from ``retry_backoff_base``, capped at ``max_inline_retry_delay``.
A hinted delay above that cap moves the chain on to the fallback without
sleeping. Quota exhaustion and any other provider error go straight to the
fallback. The fallback is called once. If it is missing or fails,
``analyze`` returns None and scoring uses the heuristic components.
"""

from __future__ import annotations

import abc
import asyncio
import json
import logging
import os
import re
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from .models import AI_MODES, POTENTIAL_TIERS, SENTIMENTS, AIAnalysis, TokenCandidate
from .utils_exec import format_usd

logger = logging.getLogger("AlertBot")

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"

_RETRY_IN_RE = re.compile(r"retry\s+in\s+([\d.]+)s", re.IGNORECASE)
_QUOTA_RE = re.compile(
    r"(per\s*day|daily|insufficient_quota|quota\s+exhausted|exceeded\s+your\s+current\s+quota|billing|limit:\s*0\b)",
    re.IGNORECASE,
)

MODE_INSTRUCTIONS: Dict[str, str] = {
    "conservative": (
        "Focus heavily on safety, long-term viability, and professionalism. Be extremely skeptical of hype "
        "and reject anything that looks like a short-term trend or derivative meme."
    ),
    "balanced": (
        "Balance technical safety with narrative hype. Look for projects with both solid fundamentals "
        "and reasonable viral potential."
    ),
    "aggressive": (
        "Focus primarily on viral potential, memeability, and 'meta-shifting' narratives. Be willing to "
        "overlook minor technical red flags if the narrative is extremely compelling."
    ),
}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class AIProviderError(Exception):
    """Any provider failure (transport, HTTP status, empty response)."""


class AIRateLimitError(AIProviderError):
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class AIQuotaExhaustedError(AIProviderError):
    """Hard quota (daily/billing) hit; retrying the same provider is pointless."""


class AIResponseParseError(AIProviderError):
    """Provider answered but no usable JSON object could be extracted."""


def classify_http_error(provider: str, status: int, body: str) -> AIProviderError:
    snippet = (body or "")[:300]
    if status == 429:
        if _QUOTA_RE.search(body or ""):
            return AIQuotaExhaustedError(f"{provider} quota exhausted: {snippet}")
        m = _RETRY_IN_RE.search(body or "")
        retry_after = float(m.group(1)) + 1 if m else None
        return AIRateLimitError(f"{provider} rate limited (429): {snippet}", retry_after=retry_after)
    return AIProviderError(f"{provider} HTTP {status}: {snippet}")


# ---------------------------------------------------------------------------
# Prompt & parsing
# ---------------------------------------------------------------------------
def build_prompt(token: TokenCandidate, mode: str) -> str:
    mode = mode if mode in AI_MODES else "balanced"
    socials = json.dumps({k: v for k, v in (asdict(token.socials) if token.socials else {}).items() if v})
    return f"""
As an expert Solana meme coin analyst operating in {mode.upper()} mode, analyze the following token.

PERSONALITY INSTRUCTIONS: {MODE_INSTRUCTIONS[mode]}

Token Name: {token.name or token.symbol}
Symbol: {token.symbol}
Narrative: {token.narrative}
Market Cap: {format_usd(token.market_cap, decimals=0)}
Liquidity: {format_usd(token.liquidity, decimals=0)}
Volume Increase: {token.volume_increase:.0f}%
Socials: {socials}

SCORING RUBRIC:
1. Originality vs. derivative of existing memes (1-33 pts)
2. Memeability / viral potential (1-33 pts)
3. Timing & Metadata: relevance to current trends and professionalism (1-34 pts)

REQUIREMENT: DO NOT use rounded numbers (avoid 50, 60, 70, 80). PROVIDE PRECISE SCORES (e.g., 67, 82).

Return ONLY a JSON object with this exact structure:
{{
  "narrativeScore": number (1-100),
  "hypeScore": number (1-100),
  "sentiment": "bullish" | "neutral" | "bearish",
  "summary": "2-sentence summary of the project",
  "risks": ["risk 1", "risk 2"],
  "potential": "low" | "medium" | "high" | "moonshot",
  "intelligenceBrief": ["bullet 1", "bullet 2", "bullet 3"],
  "narrativeAnalysis": "Qualitative breakdown"
}}
""".strip()


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the first balanced ``{...}`` in ``text`` (string-aware brace matching)."""
    if not text:
        raise AIResponseParseError("empty response")
    start = text.find("{")
    while start != -1:
        depth = 0
        in_str = False
        escape = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if escape:
                    escape = False
                elif ch == "\\":
                    escape = True
                elif ch == '"':
                    in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        obj = json.loads(text[start:i + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(obj, dict):
                        return obj
                    break
        start = text.find("{", start + 1)
    raise AIResponseParseError("no JSON object found in response")


def _score(raw: Any, field: str) -> float:
    try:
        v = float(raw)
    except (TypeError, ValueError):
        raise AIResponseParseError(f"missing or non-numeric {field}")
    return max(1.0, min(100.0, v))


def _str_list(raw: Any) -> List[str]:
    if isinstance(raw, list):
        return [str(x) for x in raw if str(x).strip()]
    if isinstance(raw, str) and raw.strip():
        return [raw.strip()]
    return []


def parse_analysis(text: str, *, mode: str, provider: str) -> AIAnalysis:
    obj = extract_json_object(text)
    summary = str(obj.get("summary") or "").strip()
    if not summary:
        raise AIResponseParseError("response missing summary")

    sentiment = str(obj.get("sentiment") or "neutral").lower()
    potential = str(obj.get("potential") or "low").lower()
    return AIAnalysis(
        narrative_score=_score(obj.get("narrativeScore", obj.get("narrative_score")), "narrativeScore"),
        hype_score=_score(obj.get("hypeScore", obj.get("hype_score")), "hypeScore"),
        sentiment=sentiment if sentiment in SENTIMENTS else "neutral",
        summary=summary,
        risks=_str_list(obj.get("risks")),
        potential=potential if potential in POTENTIAL_TIERS else "low",
        intelligence_brief=_str_list(obj.get("intelligenceBrief", obj.get("intelligence_brief"))),
        narrative_analysis=str(obj.get("narrativeAnalysis") or obj.get("narrative_analysis") or ""),
        mode=mode,
        provider=provider,
    )


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------
class _HttpProvider(abc.ABC):
    name = "provider"

    def __init__(self, api_key: Optional[str], model: str, *,
                 session: Optional[aiohttp.ClientSession] = None, timeout: float = 30.0):
        self.api_key = api_key
        self.model = model
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=float(timeout))

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and not str(self.api_key).startswith("YOUR_")

    async def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            async with self._session.post(url, json=payload, headers=headers, timeout=self._timeout) as resp:
                body = await resp.text()
                if resp.status != 200:
                    raise classify_http_error(self.name, resp.status, body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AIProviderError(f"{self.name} transport error: {e}") from e
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise AIResponseParseError(f"{self.name} returned non-JSON body") from e
        if not isinstance(data, dict):
            raise AIResponseParseError(f"{self.name} returned unexpected payload")
        return data

    @abc.abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return the raw model text for ``prompt``."""


class GeminiProvider(_HttpProvider):
    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, model: str = "gemini-flash-latest", **kw):
        super().__init__(api_key if api_key is not None else os.getenv("GEMINI_API_KEY"), model, **kw)

    async def generate(self, prompt: str) -> str:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.7, "responseMimeType": "application/json"},
        }
        data = await self._post(
            GEMINI_URL.format(model=self.model),
            payload,
            {"Content-Type": "application/json", "x-goog-api-key": str(self.api_key)},
        )
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIResponseParseError("gemini response has no candidates") from e
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text.strip():
            raise AIResponseParseError("gemini returned empty text")
        return text


class GroqProvider(_HttpProvider):
    name = "groq"

    def __init__(self, api_key: Optional[str] = None, model: str = "llama-3.3-70b-versatile", **kw):
        super().__init__(api_key if api_key is not None else os.getenv("GROQ_API_KEY"), model, **kw)

    async def generate(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You are a professional crypto analyst JSON bot."},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.7,
            "response_format": {"type": "json_object"},
        }
        data = await self._post(
            GROQ_URL, payload, {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIResponseParseError("groq response has no choices") from e
        if not content:
            raise AIResponseParseError("groq returned empty content")
        return content


# ---------------------------------------------------------------------------
# Analyst
# ---------------------------------------------------------------------------
class AINarrativeAnalyst:
    def __init__(
        self,
        primary: Optional[_HttpProvider],
        fallback: Optional[_HttpProvider] = None,
        *,
        max_attempts: int = 3,
        max_inline_retry_delay: float = 5.0,
        retry_backoff_base: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.primary = primary
        self.fallback = fallback
        self.max_attempts = max(1, int(max_attempts))
        self.max_inline_retry_delay = float(max_inline_retry_delay)
        self.retry_backoff_base = float(retry_backoff_base)
        self._sleep = sleep

    @property
    def available(self) -> bool:
        return any(p is not None and p.configured for p in (self.primary, self.fallback))

    async def _try_primary(self, prompt: str, mode: str, symbol: str) -> Optional[AIAnalysis]:
        p = self.primary
        for attempt in range(self.max_attempts):
            try:
                text = await p.generate(prompt)
                return parse_analysis(text, mode=mode, provider=p.name)
            except AIQuotaExhaustedError as e:
                logger.warning("[%s] quota exhausted for %s; switching to fallback (%s)", p.name, symbol, e)
                return None
            except AIRateLimitError as e:
                if e.retry_after is not None:
                    delay = e.retry_after
                else:
                    delay = min(self.retry_backoff_base * 2 ** attempt, self.max_inline_retry_delay)
                if attempt >= self.max_attempts - 1 or delay > self.max_inline_retry_delay:
                    logger.warning("[%s] rate limited for %s (retry in %.1fs); switching to fallback",
                                   p.name, symbol, delay)
                    return None
                logger.info("[%s] rate limited (attempt %d/%d); retrying in %.1fs",
                            p.name, attempt + 1, self.max_attempts, delay)
                await self._sleep(delay)
            except AIProviderError as e:
                logger.warning("[%s] analysis failed for %s: %s", p.name, symbol, e)
                return None
        return None

    async def analyze(self, token: TokenCandidate, mode: str = "balanced") -> Optional[AIAnalysis]:
        mode = mode if mode in AI_MODES else "balanced"
        prompt = build_prompt(token, mode)

        if self.primary is not None and self.primary.configured:
            result = await self._try_primary(prompt, mode, token.symbol)
            if result is not None:
                return result

        fb = self.fallback
        if fb is None or not fb.configured:
            logger.debug("No AI fallback configured; skipping AI analysis for %s", token.symbol)
            return None
        try:
            text = await fb.generate(prompt)
            result = parse_analysis(text, mode=mode, provider=fb.name)
            logger.info("[%s] fallback analysis successful for %s", fb.name, token.symbol)
            return result
        except AIProviderError as e:
            logger.warning("[%s] fallback failed for %s: %s", fb.name, token.symbol, e)
            return None


def make_ai_analyst(cfg: Optional[Dict[str, Any]] = None,
                    session: Optional[aiohttp.ClientSession] = None) -> AINarrativeAnalyst:
    ai = (cfg or {}).get("ai") or {}
    timeout = float(ai.get("timeout", 30))
    return AINarrativeAnalyst(
        GeminiProvider(model=ai.get("gemini_model", "gemini-flash-latest"), session=session, timeout=timeout),
        GroqProvider(model=ai.get("groq_model", "llama-3.3-70b-versatile"), session=session, timeout=timeout),
        max_inline_retry_delay=float(ai.get("max_inline_retry_delay", 5.0)),
        retry_backoff_base=float(ai.get("retry_backoff_base", 1.0)),
    )
