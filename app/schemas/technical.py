from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # attributes stay snake_case, JSON goes out camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NumericValue(_CamelModel):
    kind: Literal["number"] = "number"
    number: float


class RawTextValue(_CamelModel):
    kind: Literal["text"] = "text"
    text: str


IndicatorValue = Annotated[Union[NumericValue, RawTextValue], Field(discriminator="kind")]


class TechnicalIndicator(_CamelModel):
    name: str
    value: IndicatorValue
    action: str               # Buy / Sell / Neutral / Overbought ...
    raw_value: str            # source line, kept for debugging


class MAReading(_CamelModel):
    value: float
    action: str


class MovingAverage(_CamelModel):
    period: int               # 5 | 10 | 20 | 50 | 100 | 200
    simple: MAReading
    exponential: MAReading


class PivotPoint(_CamelModel):
    name: str                 # Classic | Fibonacci | Camarilla | Woodie's
    s3: Optional[float] = None
    s2: Optional[float] = None
    s1: Optional[float] = None
    pivot: float
    r1: Optional[float] = None
    r2: Optional[float] = None
    r3: Optional[float] = None


class TechnicalAnalysisSummary(_CamelModel):
    recommendation: str = "Neutral"
    buy_count: int = Field(default=0, ge=0)
    sell_count: int = Field(default=0, ge=0)
    neutral_count: int = Field(default=0, ge=0)


class SummaryLabels(_CamelModel):
    overall: str = "Neutral"
    technical_indicators: str = "Neutral"
    moving_averages: str = "Neutral"


class TechnicalAnalysisData(_CamelModel):
    symbol: str
    price: float
    price_change: float
    price_change_percent: float
    summary: SummaryLabels
    technical_indicators_summary: TechnicalAnalysisSummary
    moving_averages_summary: TechnicalAnalysisSummary
    technical_indicators: List[TechnicalIndicator] = []
    moving_averages: List[MovingAverage] = []
    pivot_points: List[PivotPoint] = []
    scraped_at: str
    source_url: str


class RawScrape(_CamelModel):
    url: str
    title: Optional[str] = None
    content: str = ""
    html: Optional[str] = None
    content_length: int = 0
    scraped_at: str
    metadata: Dict[str, Any] = {}


class TechnicalAnalysisPayload(_CamelModel):
    raw: RawScrape
    parsed: Optional[TechnicalAnalysisData] = None
    saved_to_database: bool = False


class TechnicalAnalysisResponse(_CamelModel):
    success: bool
    message: str
    data: TechnicalAnalysisPayload


class MarketSnapshot(BaseModel):
    # same column names as the eth_market_history table
    created_at: str
    usd: float = 0
    usd_market_cap: float = 0
    usd_24h_vol: float = 0
    usd_24h_change: float = 0
    last_updated_at: int = 0
