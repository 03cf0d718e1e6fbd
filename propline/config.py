"""Runtime configuration.

Values come from the environment (`Config.from_env`) and may be overridden by
a `.env`-style or JSON file (`Config.load`). Malformed numbers fall back to
the defaults below rather than failing the run.
"""

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Optional
import json
import os


_DEFAULT_DB_PATH = "data/propline.db"
_DEFAULT_CACHE_DIR = ".cache"

_DEFAULT_PRIZEPICKS_BASE_URL = "https://partner-api.prizepicks.com/projections"
_DEFAULT_PRIZEPICKS_PER_PAGE = 1000
_DEFAULT_PRIZEPICKS_TIMEOUT = 20.0
_DEFAULT_PRIZEPICKS_DELAY = 1.0
_DEFAULT_PRIZEPICKS_CACHE_TTL = 60

# Chat-completions endpoint used by the LLM stats provider
_DEFAULT_STATS_API_URL = "https://api.perplexity.ai/chat/completions"
_DEFAULT_STATS_MODEL = "sonar"
_DEFAULT_STATS_TIMEOUT = 30.0
_DEFAULT_STATS_BATCH_SIZE = 5
_DEFAULT_STATS_CACHE_TTL = 3600

_DEFAULT_MIN_CONFIDENCE = 70
_DEFAULT_MAX_PICKS = 50
_DEFAULT_MODEL_VERSION = "v1"


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _coerce_float(value: Optional[str], default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _coerce_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_env_file(path: Path) -> Dict[str, str]:
    data: Dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = _strip_quotes(value.strip())
    return data


def _load_config_data(path: Path) -> Dict[str, str]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    if path.suffix.lower() == ".json":
        payload = json.loads(path.read_text(encoding="utf-8"))
        return {str(k): str(v) for k, v in payload.items() if v is not None}
    return parse_env_file(path)


@dataclass
class Config:
    db_path: str = _DEFAULT_DB_PATH
    cache_dir: str = _DEFAULT_CACHE_DIR

    # Projection source
    prizepicks_base_url: str = _DEFAULT_PRIZEPICKS_BASE_URL
    prizepicks_per_page: int = _DEFAULT_PRIZEPICKS_PER_PAGE
    prizepicks_timeout: float = _DEFAULT_PRIZEPICKS_TIMEOUT
    prizepicks_delay: float = _DEFAULT_PRIZEPICKS_DELAY
    prizepicks_cache_ttl: int = _DEFAULT_PRIZEPICKS_CACHE_TTL

    # Stats provider
    stats_api_key: str = ""
    stats_api_url: str = _DEFAULT_STATS_API_URL
    stats_model: str = _DEFAULT_STATS_MODEL
    stats_timeout: float = _DEFAULT_STATS_TIMEOUT
    stats_batch_size: int = _DEFAULT_STATS_BATCH_SIZE
    stats_cache_ttl: int = _DEFAULT_STATS_CACHE_TTL

    # Picks
    min_confidence: int = _DEFAULT_MIN_CONFIDENCE
    max_picks: int = _DEFAULT_MAX_PICKS
    model_version: str = _DEFAULT_MODEL_VERSION

    @classmethod
    def from_mapping(cls, data: Dict[str, str], base: Optional["Config"] = None) -> "Config":
        """Build a config from KEY=value pairs, using `base` for missing keys."""
        base = base or cls()
        return cls(
            db_path=data.get("PROPLINE_DB_PATH") or base.db_path,
            cache_dir=data.get("PROPLINE_CACHE_DIR") or base.cache_dir,
            prizepicks_base_url=data.get("PRIZEPICKS_BASE_URL") or base.prizepicks_base_url,
            prizepicks_per_page=_coerce_int(data.get("PRIZEPICKS_PER_PAGE"), base.prizepicks_per_page),
            prizepicks_timeout=_coerce_float(data.get("PRIZEPICKS_TIMEOUT"), base.prizepicks_timeout),
            prizepicks_delay=_coerce_float(data.get("PRIZEPICKS_DELAY"), base.prizepicks_delay),
            prizepicks_cache_ttl=_coerce_int(data.get("PRIZEPICKS_CACHE_TTL"), base.prizepicks_cache_ttl),
            stats_api_key=data.get("STATS_API_KEY", base.stats_api_key),
            stats_api_url=data.get("STATS_API_URL") or base.stats_api_url,
            stats_model=data.get("STATS_MODEL") or base.stats_model,
            stats_timeout=_coerce_float(data.get("STATS_TIMEOUT"), base.stats_timeout),
            stats_batch_size=max(1, _coerce_int(data.get("STATS_BATCH_SIZE"), base.stats_batch_size)),
            stats_cache_ttl=_coerce_int(data.get("STATS_CACHE_TTL"), base.stats_cache_ttl),
            min_confidence=_coerce_int(data.get("MIN_CONFIDENCE"), base.min_confidence),
            max_picks=_coerce_int(data.get("MAX_PICKS"), base.max_picks),
            model_version=data.get("MODEL_VERSION") or base.model_version,
        )

    @classmethod
    def from_env(cls) -> "Config":
        return cls.from_mapping(dict(os.environ))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        env_config = cls.from_env()
        if not config_path:
            return env_config
        file_data = _load_config_data(Path(config_path))
        return cls.from_mapping(file_data, base=env_config)

    def to_dict(self) -> Dict[str, str]:
        data = {k: str(v) for k, v in asdict(self).items()}
        if self.stats_api_key:
            data["stats_api_key"] = "***"
        return data
