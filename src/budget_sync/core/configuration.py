from dataclasses import dataclass
from typing import Literal

from budget_sync.core import settings
from budget_sync.errors import InvalidArgumentError
from budget_sync.logger import get_logger

ValueType = Literal["int", "float"]

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConfigField:
    key: str
    value_type: ValueType
    default: float | int
    min_value: float | int | None = None
    max_value: float | int | None = None


CONFIG_FIELDS: tuple[ConfigField, ...] = (
    # Inference
    ConfigField("MIN_INFERENCE_CONFIDENCE", "float", 0.3, min_value=0.0, max_value=1.0),
    ConfigField("FALLBACK_DISCOUNT", "float", 0.8, min_value=0.0, max_value=1.0),
    ConfigField("LEARNED_MAPPING_BOOST", "float", 0.2, min_value=0.0, max_value=1.0),
    ConfigField("PATTERN_MIN_OVERLAP", "int", 1, min_value=1),
    # Learning
    ConfigField("MIN_MAPPING_CONFIDENCE", "float", 0.1, min_value=0.0, max_value=1.0),
    ConfigField("CONFLICT_OVERLAP_RATIO", "float", 0.5, min_value=0.0, max_value=1.0),
    ConfigField("CONFLICT_CONFIDENCE_GAP", "float", 0.2, min_value=0.0, max_value=1.0),
    # Reconciliation
    ConfigField("RANGE_TOLERANCE_DAYS", "int", 3, min_value=0),
)


def get_field(key: str) -> ConfigField:
    for field in CONFIG_FIELDS:
        if field.key == key:
            return field
    raise KeyError(key)


def _check_range(field: ConfigField, value: float | int) -> None:
    if field.min_value is not None and value < field.min_value:
        raise InvalidArgumentError(f"{field.key} must be at least {field.min_value}, got {value}")
    if field.max_value is not None and value > field.max_value:
        raise InvalidArgumentError(f"{field.key} must be at most {field.max_value}, got {value}")


@dataclass(frozen=True)
class Thresholds:
    """Tuning constants for inference, learning and reconciliation."""

    min_inference_confidence: float = 0.3
    fallback_discount: float = 0.8
    learned_mapping_boost: float = 0.2
    pattern_min_overlap: int = 1
    min_mapping_confidence: float = 0.1
    conflict_overlap_ratio: float = 0.5
    conflict_confidence_gap: float = 0.2
    range_tolerance_days: int = 3

    def __post_init__(self) -> None:
        for attr in self.__dataclass_fields__:
            _check_range(get_field(attr.upper()), getattr(self, attr))

    @classmethod
    def from_env(cls) -> "Thresholds":
        values: dict[str, float | int] = {}
        for attr in cls.__dataclass_fields__:
            field = get_field(attr.upper())
            if field.value_type == "int":
                values[attr] = settings.get_env_int(
                    field.key,
                    int(field.default),
                    min_value=int(field.min_value) if field.min_value is not None else None,
                )
            else:
                values[attr] = settings.get_env_float(
                    field.key,
                    float(field.default),
                    min_value=field.min_value,
                    max_value=field.max_value,
                )
        thresholds = cls(**values)
        logger.debug("[CONFIG] Loaded thresholds: %s", thresholds)
        return thresholds


DEFAULT_THRESHOLDS = Thresholds()
