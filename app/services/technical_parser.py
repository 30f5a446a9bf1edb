# app/services/technical_parser.py
"""
Markdown -> TechnicalAnalysisData.

The scraped technical-analysis page arrives as loosely formatted markdown.
Every field is pulled out by its own extractor; an extractor that finds
nothing returns a default (0, "UNKNOWN", "Neutral", []) instead of failing.
Only an unexpected exception turns the whole parse into a failure.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from re import Pattern
from typing import List, Optional, Tuple, Union

from ..schemas.technical import (
    IndicatorValue,
    MAReading,
    MovingAverage,
    NumericValue,
    PivotPoint,
    RawTextValue,
    SummaryLabels,
    TechnicalAnalysisData,
    TechnicalAnalysisSummary,
    TechnicalIndicator,
)

logger = logging.getLogger("services.technical_parser")

UNKNOWN_SYMBOL = "UNKNOWN"


# ---------- result type ----------
@dataclass(frozen=True)
class Parsed:
    record: TechnicalAnalysisData


@dataclass(frozen=True)
class Failed:
    error: Exception


ParseResult = Union[Parsed, Failed]


# ---------- pattern tables (order matters: first match wins) ----------
_NUM = r"([\d.]+)"
_SIGNED_NUM = r"([-\d.]+)"


def _indicator(label: str, value: str = _NUM, action: str = r"(\w+)") -> Pattern:
    return re.compile(r"\|\s*" + label + r"\s*\|\s*" + value + r"\s*\|\s*" + action, re.I)


INDICATOR_PATTERNS: List[Tuple[str, Pattern]] = [
    ("RSI(14)", _indicator(r"RSI\(14\)")),
    ("STOCH(9,6)", _indicator(r"STOCH\(9,6\)")),
    ("STOCHRSI(14)", _indicator(r"STOCHRSI\(14\)")),
    ("MACD(12,26)", _indicator(r"MACD\(12,26\)", _SIGNED_NUM)),
    ("ADX(14)", _indicator(r"ADX\(14\)")),
    ("Williams %R", _indicator(r"Williams %R", _SIGNED_NUM)),
    ("CCI(14)", _indicator(r"CCI\(14\)", _SIGNED_NUM)),
    # ATR's action is multi-word ("Less Volatility")
    ("ATR(14)", _indicator(r"ATR\(14\)", _NUM, r"([A-Za-z][A-Za-z ]*)")),
    ("Ultimate Oscillator", _indicator(r"Ultimate Oscillator")),
    ("ROC", _indicator(r"ROC", _SIGNED_NUM)),
    ("Bull/Bear Power(13)", _indicator(r"Bull/Bear Power\(13\)", _SIGNED_NUM)),
    ("Highs/Lows(14)", _indicator(r"Highs/Lows\(14\)", _SIGNED_NUM)),
]

MA_PATTERNS: List[Tuple[int, Pattern]] = [
    (
        period,
        re.compile(
            r"\|\s*MA%d\s*\|\s*([\d.]+)\s*\|\s*(\w+)\s*\|\s*([\d.]+)\s*\|\s*(\w+)\s*\|" % period,
            re.I,
        ),
    )
    for period in (5, 10, 20, 50, 100, 200)
]

_PIVOT_LEVELS = r"\s*\|\s*".join([_NUM] * 7)

PIVOT_PATTERNS: List[Tuple[str, Pattern]] = [
    ("Classic", re.compile(r"Classic\s*\|\s*" + _PIVOT_LEVELS, re.I)),
    ("Fibonacci", re.compile(r"Fibonacci\s*\|\s*" + _PIVOT_LEVELS, re.I)),
    ("Camarilla", re.compile(r"Camarilla\s*\|\s*" + _PIVOT_LEVELS, re.I)),
    ("Woodie's", re.compile(r"Woodie['’]s\s*\|\s*" + _PIVOT_LEVELS, re.I)),
]

_PIVOT_SECTION_RE = re.compile(r"## \[Pivot Points\].*?\n(.*?)(?=##|\Z)", re.I | re.S)

# "4,491.64\n+11.46(+0.26%)" -- price, then signed change and percent on the next line
_PRICE_WITH_CHANGE = r"([0-9,]+\.[0-9]+)\s*\n\s*"

PRICE_PATTERNS: List[Pattern] = [
    re.compile(_PRICE_WITH_CHANGE + r"[+\-]([0-9,]+\.[0-9]+)\s*\([+\-]([0-9,]+\.[0-9]+)%\)"),
    re.compile(r"([0-9,]+\.?[0-9]*)\s*USD", re.I),
    re.compile(r"Price[:\s]*\$?([0-9,]+\.?[0-9]*)", re.I),
    # last resort: only right while the instrument trades in the 4,xxx band
    re.compile(r"(4,[0-9]{3}\.[0-9]{2})"),
]

# (pattern, sign group, amount group)
CHANGE_PATTERNS: List[Tuple[Pattern, int, int]] = [
    (re.compile(_PRICE_WITH_CHANGE + r"([+\-])([0-9,]+\.[0-9]+)\s*\([+\-]([0-9,]+\.[0-9]+)%\)"), 2, 3),
    (re.compile(r"([+\-])([0-9,]+\.?\d*)\s*\([+\-]([0-9,]+\.?\d*)%\)"), 1, 2),
]

CHANGE_PERCENT_PATTERNS: List[Tuple[Pattern, int, int]] = [
    (re.compile(_PRICE_WITH_CHANGE + r"[+\-]([0-9,]+\.[0-9]+)\s*\(([+\-])([0-9,]+\.[0-9]+)%\)"), 3, 4),
    (re.compile(r"[+\-]([0-9,]+\.?\d*)\s*\(([+\-])([0-9,]+\.?\d*)%\)"), 2, 3),
]

_TITLE_RE = re.compile(r"# (.*?)(?:\n|$)")
_PAIR_RE = re.compile(r"(ETH|BTC|ADA|SOL|DOT)/USD", re.I)

_OVERALL_RE = re.compile(r"## Summary:[ \t]*(\w+)", re.I)
_TI_LABEL_RE = re.compile(r"Technical Indicators.*?(\w+)\s+Buy:\s*\((\d+)\)\s+Sell:\s*\((\d+)\)", re.I | re.S)
_MA_LABEL_RE = re.compile(r"Moving Averages.*?(\w+)\s+Buy:\s*\((\d+)\)\s+Sell:\s*\((\d+)\)", re.I | re.S)
_TI_LABEL_START_RE = re.compile(r"Technical Indicators", re.I)
_MA_LABEL_START_RE = re.compile(r"Moving Averages", re.I)

_TI_SUMMARY_ROW_RE = re.compile(
    r"\|\s*Technical Indicators:\s*\|\s*([^|]+)\s*\|\s*Buy:\s*\((\d+)\)\s*\|\s*Sell:\s*\((\d+)\)\s*\|", re.I
)
_MA_SUMMARY_ROW_RE = re.compile(
    r"\|\s*Moving Averages:\s*\|\s*([^|]+)\s*\|\s*Buy:\s*\((\d+)\)\s*\|\s*Sell:\s*\((\d+)\)\s*\|", re.I
)


# ---------- helpers ----------
def _to_float(text: str) -> Optional[float]:
    """Parse "4,491.64" -> 4491.64; None when the text is not a number."""
    try:
        return float(text.replace(",", ""))
    except ValueError:
        return None


def _signed(sign: str, amount: str) -> Optional[float]:
    value = _to_float(amount)
    if value is None:
        return None
    return -value if sign == "-" else value


# ---------- extractors ----------
def extract_symbol(markdown: str) -> str:
    title = _TITLE_RE.search(markdown)
    if title:
        text = title.group(1).lower()
        if "ethereum" in text or "eth" in text:
            return "ETH"
        if "bitcoin" in text or "btc" in text:
            return "BTC"

    pair = _PAIR_RE.search(markdown)
    if pair:
        return pair.group(1).upper()
    return UNKNOWN_SYMBOL


def extract_price(markdown: str) -> float:
    for pattern in PRICE_PATTERNS:
        m = pattern.search(markdown)
        if not m:
            continue
        value = _to_float(m.group(1))
        if value is not None:
            return value
    return 0.0


def _first_signed(markdown: str, patterns: List[Tuple[Pattern, int, int]]) -> float:
    for pattern, sign_group, amount_group in patterns:
        m = pattern.search(markdown)
        if not m:
            continue
        value = _signed(m.group(sign_group), m.group(amount_group))
        if value is not None:
            return value
    return 0.0


def extract_price_change(markdown: str) -> float:
    return _first_signed(markdown, CHANGE_PATTERNS)


def extract_price_change_percent(markdown: str) -> float:
    return _first_signed(markdown, CHANGE_PERCENT_PATTERNS)


def _label_match(markdown: str, start_re: Pattern, label_re: Pattern):
    # a later label can never give an earlier match than the first one
    start = start_re.search(markdown)
    if not start:
        return None
    return label_re.match(markdown, start.start())


def extract_summary(markdown: str) -> SummaryLabels:
    """Headline labels; each one is matched on its own and may disagree with the count rows."""
    summary = SummaryLabels()

    m = _OVERALL_RE.search(markdown)
    if m:
        summary.overall = m.group(1)

    m = _label_match(markdown, _TI_LABEL_START_RE, _TI_LABEL_RE)
    if m:
        summary.technical_indicators = m.group(1)

    m = _label_match(markdown, _MA_LABEL_START_RE, _MA_LABEL_RE)
    if m:
        summary.moving_averages = m.group(1)

    return summary


def _indicator_value(text: str) -> IndicatorValue:
    number = _to_float(text)
    if number is None:
        return RawTextValue(text=text)
    return NumericValue(number=number)


def extract_technical_indicators(markdown: str) -> List[TechnicalIndicator]:
    indicators: List[TechnicalIndicator] = []
    seen = set()

    for line in markdown.split("\n"):
        if "|" not in line:
            continue

        for name, pattern in INDICATOR_PATTERNS:
            m = pattern.search(line)
            if not m:
                continue
            # one catalog entry per line; repeated tables keep the first reading
            if name not in seen:
                seen.add(name)
                indicators.append(
                    TechnicalIndicator(
                        name=name,
                        value=_indicator_value(m.group(1)),
                        action=m.group(2).strip(),
                        raw_value=line.strip(),
                    )
                )
            break

    return indicators


def extract_moving_averages(markdown: str) -> List[MovingAverage]:
    # row shape: | MA5 | 4488.29 | Buy | 4488.00 | Buy |
    moving_averages: List[MovingAverage] = []
    seen = set()

    rows = [l for l in markdown.split("\n") if "|" in l and "MA" in l and "---" not in l]
    for row in rows:
        for period, pattern in MA_PATTERNS:
            m = pattern.search(row)
            if not m:
                continue
            simple, exponential = _to_float(m.group(1)), _to_float(m.group(3))
            if period not in seen and simple is not None and exponential is not None:
                seen.add(period)
                moving_averages.append(
                    MovingAverage(
                        period=period,
                        simple=MAReading(value=simple, action=m.group(2).strip()),
                        exponential=MAReading(value=exponential, action=m.group(4).strip()),
                    )
                )
            break

    return moving_averages


def extract_pivot_points(markdown: str) -> List[PivotPoint]:
    section = _PIVOT_SECTION_RE.search(markdown)
    if not section:
        return []

    table = section.group(1)
    pivot_points: List[PivotPoint] = []
    for name, pattern in PIVOT_PATTERNS:
        m = pattern.search(table)
        if not m:
            continue
        levels = [_to_float(g) for g in m.groups()]
        s3, s2, s1, pivot, r1, r2, r3 = levels
        if pivot is None:
            continue
        pivot_points.append(PivotPoint(name=name, s3=s3, s2=s2, s1=s1, pivot=pivot, r1=r1, r2=r2, r3=r3))

    return pivot_points


def _summary_row(markdown: str, pattern: Pattern) -> TechnicalAnalysisSummary:
    m = pattern.search(markdown)
    if not m:
        return TechnicalAnalysisSummary()
    try:
        buy_count, sell_count = int(m.group(2)), int(m.group(3))
    except ValueError:
        # counts too long for int() are treated as no match
        return TechnicalAnalysisSummary()
    # neutral_count stays 0; the page gives no neutral tally in this row
    return TechnicalAnalysisSummary(
        recommendation=m.group(1).strip(),
        buy_count=buy_count,
        sell_count=sell_count,
        neutral_count=0,
    )


def extract_technical_indicators_summary(markdown: str) -> TechnicalAnalysisSummary:
    """| Technical Indicators: | Strong Buy | Buy: (9) | Sell: (0) |"""
    return _summary_row(markdown, _TI_SUMMARY_ROW_RE)


def extract_moving_averages_summary(markdown: str) -> TechnicalAnalysisSummary:
    """| Moving Averages: | Buy | Buy: (8) | Sell: (4) |"""
    return _summary_row(markdown, _MA_SUMMARY_ROW_RE)


# ---------- entry points ----------
def parse(markdown: str, source_url: str) -> ParseResult:
    try:
        record = TechnicalAnalysisData(
            symbol=extract_symbol(markdown),
            price=extract_price(markdown),
            price_change=extract_price_change(markdown),
            price_change_percent=extract_price_change_percent(markdown),
            summary=extract_summary(markdown),
            technical_indicators_summary=extract_technical_indicators_summary(markdown),
            moving_averages_summary=extract_moving_averages_summary(markdown),
            technical_indicators=extract_technical_indicators(markdown),
            moving_averages=extract_moving_averages(markdown),
            pivot_points=extract_pivot_points(markdown),
            scraped_at=datetime.now(timezone.utc).isoformat(),
            source_url=source_url,
        )
    except Exception as e:
        logger.exception("Error parsing technical analysis markdown from %s", source_url)
        return Failed(error=e)
    return Parsed(record=record)


def parse_markdown(markdown: str, source_url: str) -> Optional[TechnicalAnalysisData]:
    result = parse(markdown, source_url)
    if isinstance(result, Parsed):
        return result.record
    return None
