import pytest
import requests


SAMPLE_MARKDOWN = """# Ethereum Technical Analysis

ETH/USD

4,491.64
+11.46(+0.26%)

## Summary:Buy

| Technical Indicators: | Strong Buy | Buy: (9) | Sell: (0) |
| Moving Averages: | Buy | Buy: (8) | Sell: (4) |

## Technical Indicators

| Name | Value | Action |
| --- | --- | --- |
| RSI(14) | 55.3 | Buy |
| STOCH(9,6) | 61.2 | Buy |
| STOCHRSI(14) | 100.0 | Overbought |
| MACD(12,26) | -3.4 | Sell |
| ATR(14) | 12.5 | Less Volatility |
| Williams %R | -20.1 | Buy |

## Moving Averages

| Period | Simple | | Exponential | |
| MA5 | 4488.29 | Buy | 4488.00 | Buy |
| MA50 | 4401.10 | Buy | 4420.55 | Buy |
| MA200 | 4600.00 | Sell | 4590.12 | Sell |

## [Pivot Points](https://example.com/pivots)

| Name | S3 | S2 | S1 | Pivot Points | R1 | R2 | R3 |
| Classic | 4400.1 | 4420.2 | 4450.3 | 4470.4 | 4500.5 | 4520.6 | 4550.7 |
| Fibonacci | 4420.2 | 4431.0 | 4440.5 | 4470.4 | 4490.0 | 4500.1 | 4520.6 |

## Disclaimer

Prices are indicative.
"""

SOURCE_URL = "https://www.investing.com/crypto/ethereum/technical"


@pytest.fixture
def sample_markdown() -> str:
    return SAMPLE_MARKDOWN


@pytest.fixture
def source_url() -> str:
    return SOURCE_URL


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


@pytest.fixture
def fake_response():
    return FakeResponse
