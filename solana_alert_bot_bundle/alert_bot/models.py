# solana_alert_bot_bundle/alert_bot/models.py
"""
Typed records passed between the adapters, the tiered validator, the composite
scorer and the alert assembler.

Every record is a plain dataclass with an ``as_dict()`` helper so it can be
stored as JSON (SQLite ``data`` column), posted to a webhook, or logged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

AI_MODES = ("conservative", "balanced", "aggressive")
SENTIMENTS = ("bullish", "neutral", "bearish")
POTENTIAL_TIERS = ("low", "medium", "high", "moonshot")
REPUTATION_TIERS = ("High", "Medium", "Low", "New")


def _num(x, default=0.0) -> float:
    try:
        if x is None:
            return float(default)
        return float(x)
    except (TypeError, ValueError):
        return float(default)


def _opt_num(x) -> Optional[float]:
    if x is None:
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


# ---------- Token / settings ----------

@dataclass
class SocialLinks:
    website: Optional[str] = None
    twitter: Optional[str] = None
    telegram: Optional[str] = None

    def has_all(self) -> bool:
        return bool(self.website and self.twitter and self.telegram)

    def has_any(self) -> bool:
        return bool(self.website or self.twitter or self.telegram)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> Optional["SocialLinks"]:
        if not isinstance(d, dict):
            return None
        return cls(website=d.get("website") or None,
                   twitter=d.get("twitter") or None,
                   telegram=d.get("telegram") or None)


@dataclass
class TokenCandidate:
    """A token under evaluation. ``top_holder_percent`` is filled by the holder check."""
    mint: str
    symbol: str
    name: str = ""
    narrative: str = ""
    liquidity: float = 0.0
    volume_increase: float = 0.0
    price_usd: str = "0"
    market_cap: float = 0.0
    top_holder_percent: Optional[float] = None
    pair_address: Optional[str] = None
    volume_1h: Optional[float] = None
    volume_6h: Optional[float] = None
    volume_24h: Optional[float] = None
    volume_total: Optional[float] = None
    price_change_24h: Optional[float] = None
    socials: Optional[SocialLinks] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TokenCandidate":
        return cls(
            mint=str(d["mint"]),
            symbol=str(d.get("symbol") or "UNKNOWN"),
            name=str(d.get("name") or d.get("symbol") or ""),
            narrative=str(d.get("narrative") or ""),
            liquidity=_num(d.get("liquidity")),
            volume_increase=_num(d.get("volume_increase")),
            price_usd=str(d.get("price_usd") if d.get("price_usd") is not None else "0"),
            market_cap=_num(d.get("market_cap")),
            top_holder_percent=_opt_num(d.get("top_holder_percent")),
            pair_address=d.get("pair_address") or None,
            volume_1h=_opt_num(d.get("volume_1h")),
            volume_6h=_opt_num(d.get("volume_6h")),
            volume_24h=_opt_num(d.get("volume_24h")),
            volume_total=_opt_num(d.get("volume_total")),
            price_change_24h=_opt_num(d.get("price_change_24h")),
            socials=SocialLinks.from_dict(d.get("socials")),
        )


@dataclass
class BotSettings:
    min_liquidity: float = 50_000.0
    max_top_holder_percent: float = 10.0
    min_volume_increase: float = 200.0
    scan_interval: int = 60
    enable_telegram_alerts: bool = False
    min_composite_score: float = 50.0
    min_social_score: float = 30.0
    whale_only: bool = False
    ai_mode: str = "balanced"

    def __post_init__(self):
        if self.ai_mode not in AI_MODES:
            self.ai_mode = "balanced"

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]]) -> "BotSettings":
        """Build settings from the ``settings:`` section of config.yaml (missing keys keep defaults)."""
        raw = (cfg or {}).get("settings") or {}
        base = cls()
        return cls(
            min_liquidity=_num(raw.get("min_liquidity"), base.min_liquidity),
            max_top_holder_percent=_num(raw.get("max_top_holder_percent"), base.max_top_holder_percent),
            min_volume_increase=_num(raw.get("min_volume_increase"), base.min_volume_increase),
            scan_interval=int(_num(raw.get("scan_interval"), base.scan_interval)),
            enable_telegram_alerts=bool(raw.get("enable_telegram_alerts", base.enable_telegram_alerts)),
            min_composite_score=_num(raw.get("min_composite_score"), base.min_composite_score),
            min_social_score=_num(raw.get("min_social_score"), base.min_social_score),
            whale_only=bool(raw.get("whale_only", base.whale_only)),
            ai_mode=str(raw.get("ai_mode") or base.ai_mode).lower(),
        )


# ---------- Checks ----------

@dataclass
class ValidationChecks:
    narrative: bool = False   # narrative quality
    attention: bool = False   # fresh attention (volume spike)
    liquidity: bool = False   # clean liquidity (> threshold)
    volume: bool = False      # organic volume band
    contract: bool = False    # contract verified, no risks
    holders: bool = False     # holder distribution not centralized
    sell_test: bool = False   # sell simulation passed

    @property
    def total(self) -> int:
        return len(fields(self))

    def passed_count(self) -> int:
        return sum(1 for f in fields(self) if getattr(self, f.name))

    def as_dict(self) -> Dict[str, bool]:
        return asdict(self)


# ---------- Adapter results ----------

@dataclass
class ContractReport:
    verified: bool
    risks: List[str]
    score: float
    top_holders: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class SellabilityResult:
    can_sell: bool
    reason: str
    slippage: float = 0.0
    price_impact: Optional[float] = None


@dataclass
class HolderDistribution:
    top_holder_percent: float
    holder_count: int


@dataclass
class QuickSecurity:
    mint_authority: bool = False
    freeze_authority: bool = False
    checked: bool = False     # False when the account could not be read

    @property
    def passed(self) -> bool:
        return not (self.mint_authority or self.freeze_authority)

    def risks(self) -> List[str]:
        out: List[str] = []
        if self.mint_authority:
            out.append("Mint authority enabled")
        if self.freeze_authority:
            out.append("Freeze authority enabled")
        return out


@dataclass
class FreshnessResult:
    is_fresh: bool = True
    age_minutes: int = 0


@dataclass
class TxPatternResult:
    is_organic: bool = True
    suspicious_patterns: List[str] = field(default_factory=list)


@dataclass
class LiquidityStability:
    is_stable: bool = True
    liquidity_change: float = 0.0
    warning: Optional[str] = None


@dataclass
class MarketContext:
    is_risk_on: bool = True
    sol_trend: str = "neutral"
    should_trade: bool = True


@dataclass
class NarrativeQuality:
    score: float = 50.0
    signals: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class SocialSignals:
    overall_score: float = 15.0
    sentiment: str = "neutral"
    twitter_mentions: int = 0


@dataclass
class WhaleActivity:
    involved: bool = False
    confidence: float = 0.0
    score: float = 0.0


@dataclass
class DevScore:
    score: float = 50.0
    reputation: str = "New"
    previous_tokens: int = 0
    rugged_tokens: int = 0
    details: List[str] = field(default_factory=list)


@dataclass
class BundleAnalysis:
    is_bundled: bool = False
    bundle_percentage: float = 0.0
    sybil_count: int = 0
    details: List[str] = field(default_factory=list)


@dataclass
class PumpAnalysis:
    is_near_bonding_curve: bool = False
    bonding_progress: float = 0.0
    king_of_the_hill_potential: bool = False
    complete: bool = False


@dataclass
class AIAnalysis:
    narrative_score: float
    hype_score: float
    sentiment: str
    summary: str
    risks: List[str] = field(default_factory=list)
    potential: str = "low"
    intelligence_brief: List[str] = field(default_factory=list)
    narrative_analysis: str = ""
    mode: Optional[str] = None
    provider: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EnhancementBundle:
    freshness: FreshnessResult = field(default_factory=FreshnessResult)
    tx_patterns: TxPatternResult = field(default_factory=TxPatternResult)
    liquidity_stability: LiquidityStability = field(default_factory=LiquidityStability)
    market_context: MarketContext = field(default_factory=MarketContext)
    narrative_quality: NarrativeQuality = field(default_factory=NarrativeQuality)
    social_signals: SocialSignals = field(default_factory=SocialSignals)
    whale_activity: WhaleActivity = field(default_factory=WhaleActivity)
    dev_score: Optional[DevScore] = None
    bundle_analysis: BundleAnalysis = field(default_factory=BundleAnalysis)
    ai_analysis: Optional[AIAnalysis] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationResult:
    checks: ValidationChecks
    contract_score: float
    risks: List[str]
    tier_reached: int
    enhancements: EnhancementBundle
    token: Optional[TokenCandidate] = None


@dataclass
class CompositeScore:
    score: int
    is_valid: bool
    recommendations: List[str] = field(default_factory=list)


@dataclass
class Alert:
    id: str
    timestamp: str
    token: TokenCandidate
    checks: ValidationChecks
    is_valid: bool
    passed_checks: int
    total_checks: int
    setup_type: str
    contract_score: float
    composite_score: int
    social_signals: SocialSignals
    whale_activity: WhaleActivity
    recommendations: List[str] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)
    dev_score: Optional[DevScore] = None
    bundle_analysis: Optional[BundleAnalysis] = None
    ai_analysis: Optional[AIAnalysis] = None
    tier_reached: int = 1

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)
