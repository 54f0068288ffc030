"""
VolSpike 配置管理

支持 YAML 配置文件和环境变量覆盖。
"""

import os
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Dict, List, Optional
from pathlib import Path
import yaml

from .exceptions import ValidationError


SUPPORTED_INTERVALS = ("1h", "4h", "1d")


@dataclass
class MonitorConfig:
    """成交量异动监控配置 (每轮运行期间只读)"""
    # 批处理 / 限速
    batch_size: int = 5
    inter_batch_delay: float = 0.5  # 秒

    # 异动判定
    volume_multiplier: float = 2.0
    high_ratio_threshold: float = 5.0
    window_size: int = 21  # 20 根基准 K线 + 1 根当前 K线
    interval: str = "1d"

    # 流动性预筛选 (24h 成交额, USDT)
    min_quote_volume: float = 100_000_000
    ignore_list: List[str] = field(default_factory=list)
    ignore_substrings: List[str] = field(default_factory=lambda: ["USDC"])

    # 分段推送
    max_segment_length: int = 4000
    max_retries: int = 3
    retry_delay: float = 2.0
    segment_delay: float = 0.5
    notify_empty: bool = False  # 无异动时也推送
    notify_errors: bool = True  # 扫描失败时推送错误提示

    # 定时任务: 每 N 小时的第 M 分钟执行
    schedule_minute: int = 55
    schedule_every_hours: int = 1

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValidationError(f"batch_size must be >= 1, got {self.batch_size}", field="batch_size")
        if self.inter_batch_delay < 0:
            raise ValidationError("inter_batch_delay must be >= 0", field="inter_batch_delay")
        if self.window_size < 2:
            raise ValidationError(f"window_size must be >= 2, got {self.window_size}", field="window_size")
        if self.volume_multiplier <= 0:
            raise ValidationError("volume_multiplier must be > 0", field="volume_multiplier")
        if self.high_ratio_threshold <= self.volume_multiplier:
            raise ValidationError(
                f"high_ratio_threshold ({self.high_ratio_threshold}) must be greater than "
                f"volume_multiplier ({self.volume_multiplier})",
                field="high_ratio_threshold",
            )
        if self.interval not in SUPPORTED_INTERVALS:
            raise ValidationError(f"Unsupported interval: {self.interval}", field="interval")
        if not 2 <= self.max_segment_length <= 4096:
            # Telegram 单条消息上限 4096
            raise ValidationError("max_segment_length must be in [2, 4096]", field="max_segment_length")
        if self.max_retries < 1:
            raise ValidationError("max_retries must be >= 1", field="max_retries")
        if not 0 <= self.schedule_minute < 60:
            raise ValidationError("schedule_minute must be in [0, 60)", field="schedule_minute")
        if self.schedule_every_hours < 1:
            raise ValidationError("schedule_every_hours must be >= 1", field="schedule_every_hours")


@dataclass
class MarketAlertConfig:
    """资金费率 / 价格剧烈波动提醒配置 (批处理、流动性过滤、推送参数沿用 monitor)"""
    enabled: bool = True
    funding_threshold_pct: float = 0.5  # |费率| > 0.5% 提醒
    price_swing_pct: float = 10.0  # |K线涨跌幅| > 10% 提醒
    swing_interval: str = "4h"

    # 默认每天奇数小时的第 50 分钟执行 (01:50, 03:50, ... 23:50)
    schedule_minute: int = 50
    schedule_every_hours: int = 2
    schedule_hour_offset: int = 1

    def __post_init__(self):
        if self.funding_threshold_pct <= 0:
            raise ValidationError("funding_threshold_pct must be > 0", field="funding_threshold_pct")
        if self.price_swing_pct <= 0:
            raise ValidationError("price_swing_pct must be > 0", field="price_swing_pct")
        if self.swing_interval not in SUPPORTED_INTERVALS:
            raise ValidationError(f"Unsupported interval: {self.swing_interval}", field="swing_interval")
        if not 0 <= self.schedule_minute < 60:
            raise ValidationError("schedule_minute must be in [0, 60)", field="schedule_minute")
        if self.schedule_every_hours < 1:
            raise ValidationError("schedule_every_hours must be >= 1", field="schedule_every_hours")
        if not 0 <= self.schedule_hour_offset < self.schedule_every_hours:
            raise ValidationError(
                "schedule_hour_offset must be in [0, schedule_every_hours)",
                field="schedule_hour_offset",
            )


@dataclass
class ExchangeConfig:
    """交易所 REST 配置"""
    name: str
    enabled: bool = True
    api_key: str = ""
    api_secret: str = ""
    passphrase: str = ""  # OKX
    rest_url: str = ""
    timeout: float = 10.0
    proxy: str = ""
    interval: str = ""  # 为空时使用 monitor.interval

    def __post_init__(self):
        """根据交易所名称设置默认 URL"""
        if self.interval and self.interval not in SUPPORTED_INTERVALS:
            raise ValidationError(
                f"Unsupported interval for {self.name}: {self.interval}",
                field="exchanges.interval",
            )
        if not self.rest_url:
            if self.name == "binance":
                self.rest_url = "https://fapi.binance.com"
            elif self.name == "okx":
                self.rest_url = "https://www.okx.com"


@dataclass
class TelegramConfig:
    """Telegram 推送配置"""
    enabled: bool = True
    bot_token: str = ""
    chat_id: str = ""
    topic_id: Optional[int] = None  # message_thread_id
    timeout: float = 10.0
    proxy: str = ""

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.bot_token) and bool(self.chat_id)


def _default_exchanges() -> Dict[str, ExchangeConfig]:
    return {
        "binance": ExchangeConfig(name="binance"),
        "okx": ExchangeConfig(name="okx"),
    }


@dataclass
class Config:
    """VolSpike 主配置"""
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    alerts: MarketAlertConfig = field(default_factory=MarketAlertConfig)
    exchanges: Dict[str, ExchangeConfig] = field(default_factory=_default_exchanges)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)

    # 日志配置
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Prometheus (0 = 关闭)
    metrics_port: int = 0

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        """从 YAML 文件加载配置"""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return cls._from_dict(data or {})

    @classmethod
    def _from_dict(cls, data: Dict) -> "Config":
        """从字典创建配置"""
        config = cls()

        def _filter_kwargs(dc_cls, raw: dict) -> dict:
            allowed = {f.name for f in dataclass_fields(dc_cls) if f.init}
            return {k: v for k, v in raw.items() if k in allowed}

        if monitor_data := data.get("monitor"):
            config.monitor = MonitorConfig(**_filter_kwargs(MonitorConfig, monitor_data))

        if alerts_data := data.get("alerts"):
            config.alerts = MarketAlertConfig(**_filter_kwargs(MarketAlertConfig, alerts_data))

        # 交易所配置: 出现在 YAML 中的交易所覆盖默认值
        for name, exc_data in (data.get("exchanges") or {}).items():
            if not isinstance(exc_data, dict):
                continue
            kwargs = _filter_kwargs(ExchangeConfig, exc_data)
            kwargs.pop("name", None)
            config.exchanges[name] = ExchangeConfig(name=name, **kwargs)

        if tg_data := data.get("telegram"):
            config.telegram = TelegramConfig(**_filter_kwargs(TelegramConfig, tg_data))

        config.log_level = data.get("log_level", config.log_level)
        config.log_format = data.get("log_format", config.log_format)
        config.metrics_port = int(data.get("metrics_port", config.metrics_port))

        return config

    def apply_env(self) -> "Config":
        """环境变量覆盖 (凭证通常只放在环境变量里)"""
        if token := os.getenv("TELEGRAM_BOT_TOKEN"):
            self.telegram.bot_token = token
        if chat_id := os.getenv("TELEGRAM_CHAT_ID"):
            self.telegram.chat_id = chat_id
        if topic_id := os.getenv("TELEGRAM_TOPIC_ID"):
            self.telegram.topic_id = int(topic_id)

        okx = self.exchanges.get("okx")
        if okx is not None:
            okx.api_key = os.getenv("OKX_API_KEY", okx.api_key)
            okx.api_secret = os.getenv("OKX_SECRET_KEY", okx.api_secret)
            okx.passphrase = os.getenv("OKX_PASSPHRASE", okx.passphrase)

        binance = self.exchanges.get("binance")
        if binance is not None:
            binance.api_key = os.getenv("BINANCE_API_KEY", binance.api_key)

        if proxy := os.getenv("VOLSPIKE_PROXY"):
            for exc in self.exchanges.values():
                exc.proxy = proxy
            self.telegram.proxy = proxy

        if log_level := os.getenv("LOG_LEVEL"):
            self.log_level = log_level
        if metrics_port := os.getenv("VOLSPIKE_METRICS_PORT"):
            self.metrics_port = int(metrics_port)

        return self

    def enabled_exchanges(self) -> List[ExchangeConfig]:
        return [exc for exc in self.exchanges.values() if exc.enabled]

    def get_exchange(self, name: str) -> Optional[ExchangeConfig]:
        """获取交易所配置"""
        return self.exchanges.get(name)


def load_config(config_path: Optional[str] = None) -> Config:
    """
    加载配置

    优先级: 环境变量 > 配置文件 > 默认值
    """
    config = Config()
    resolved_path = resolve_config_path(config_path)
    if resolved_path is not None:
        config = Config.from_yaml(str(resolved_path))

    return config.apply_env()


def resolve_config_path(config_path: Optional[str] = None) -> Optional[Path]:
    """
    Resolve config file path.

    Priority:
      1) env VOLSPIKE_CONFIG
      2) given config_path (absolute/relative)
      3) cwd config/default.yaml
      4) project_root/config/default.yaml (relative to this module)
    """
    candidates: list[Path] = []

    env_path = os.getenv("VOLSPIKE_CONFIG")
    if env_path:
        candidates.append(Path(env_path))

    project_root = Path(__file__).resolve().parents[3]

    if config_path:
        p = Path(config_path)
        candidates.append(p)
        if not p.is_absolute():
            candidates.append(project_root / p)

    candidates.append(Path("config/default.yaml"))
    candidates.append(project_root / "config" / "default.yaml")

    for p in candidates:
        if p.is_file():
            return p

    return None
