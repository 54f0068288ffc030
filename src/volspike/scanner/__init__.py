"""Scanner module for volume anomaly, funding rate and price swing detection."""

from .candle_fetcher import CandleWindow, CandleWindowFetcher
from .batch import chunked, process_in_batches
from .base import BaseScanner, filter_liquid_symbols
from .volume_anomaly import VolumeAnomalyDetector, VolumeAnomalyResult, detect
from .volume_scanner import ScanReport, VolumeSpikeScanner, run_volume_scanner
from .funding_scanner import (
    FundingRateAlert,
    FundingRateScanner,
    MarketAlertReport,
    PriceSwingAlert,
    check_funding,
    check_price_swing,
    run_funding_scanner,
)

__all__ = [
    # Candle windows
    "CandleWindow",
    "CandleWindowFetcher",
    # Batch scheduling
    "chunked",
    "process_in_batches",
    # Detection
    "VolumeAnomalyDetector",
    "VolumeAnomalyResult",
    "detect",
    # Orchestration
    "BaseScanner",
    "ScanReport",
    "VolumeSpikeScanner",
    "filter_liquid_symbols",
    "run_volume_scanner",
    # Funding rate / price swing
    "FundingRateAlert",
    "FundingRateScanner",
    "MarketAlertReport",
    "PriceSwingAlert",
    "check_funding",
    "check_price_swing",
    "run_funding_scanner",
]
