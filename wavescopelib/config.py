from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

PRESET_SCHEMA_VERSION = "1.0"

# CLI-only keys that never end up in presets
_INTERNAL_KEYS = {"json", "width", "scale", "count"}

QOS_PRIORITIES: dict[str, int] = {
    "user_interactive": 0,
    "user_initiated": 10,
    "default": 20,
    "unspecified": 20,
    "utility": 30,
    "background": 40,
}


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class ConfigFieldError:
    """A single validation error for one configuration field.

    Attributes:
        key:     The config key that failed validation.
        value:   The offending value.
        message: Human-readable explanation of what is wrong.
    """
    key: str
    value: Any
    message: str


@dataclass(frozen=True)
class ParamSpec:
    """Declarative specification for a single configuration parameter."""
    key: str
    type: type | tuple              # expected Python type(s)
    default: Any
    label: str
    description: str = ""
    min: float | int | None = None   # inclusive lower bound (unless min_exclusive)
    max: float | int | None = None   # inclusive upper bound (unless max_exclusive)
    min_exclusive: bool = False
    max_exclusive: bool = False
    choices: list | None = None
    nullable: bool = False


ANALYSIS_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="noise_floor_db", type=(int, float), default=-50.0,
        max=0.0, max_exclusive=True,
        label="Noise floor (dB)",
        description=(
            "Everything quieter than this level (relative to 16-bit full "
            "scale) is clipped and treated as silence.  Amplitudes are "
            "divided by this value, so 1.0 means silence and 0.0 means "
            "full scale."
        ),
    ),
    ParamSpec(
        key="samples_per_fft", type=int, default=4096, min=2,
        label="FFT window (samples)",
        description="Window length of the spectral analysis. Windows do not overlap.",
    ),
    ParamSpec(
        key="fft_bands", type=int, default=None, min=1, nullable=True,
        label="Frequency bands",
        description="Number of linear bands per spectral frame. Empty disables spectra.",
    ),
    ParamSpec(
        key="batch_pixels", type=int, default=10, min=1,
        label="Batch size (output samples)",
        description=(
            "Buffered PCM is converted once enough input for this many "
            "output samples has accumulated."
        ),
    ),
    ParamSpec(
        key="max_read_cycles", type=int, default=10000, min=1,
        label="Read cycle limit",
        description=(
            "Upper bound on read/process iterations per analysis. The "
            "envelope is finalized with whatever was read when it is hit."
        ),
    ),
    ParamSpec(
        key="block_frames", type=int, default=8192, min=1,
        label="Decode block (frames)",
        description="Frames decoded per block by the file reader.",
    ),
    ParamSpec(
        key="max_concurrent", type=int, default=3, min=1,
        label="Concurrent analyses",
        description="Maximum number of analyses allowed in their read loop at once.",
    ),
    ParamSpec(
        key="max_workers", type=int, default=None, min=1, nullable=True,
        label="Worker threads",
        description="Size of the analysis thread pool. Empty picks a default.",
    ),
    ParamSpec(
        key="qos", type=str, default="user_initiated",
        choices=list(QOS_PRIORITIES),
        label="Priority class",
        description="Advisory priority; orders queued jobs, never affects results.",
    ),
]


def default_config() -> dict[str, Any]:
    """Returns the built-in default configuration."""
    config = {p.key: p.default for p in ANALYSIS_PARAMS}
    config.update({
        "json": None,
        "width": None,
        "scale": 1.0,
    })
    return config


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge config dicts left-to-right.  Later values override earlier ones."""
    result: dict[str, Any] = {}
    for cfg in configs:
        result.update(cfg)
    return result


def qos_priority(qos: str) -> int:
    """Queue priority for a QoS class name (lower runs first)."""
    return QOS_PRIORITIES.get(qos, QOS_PRIORITIES["default"])


def load_preset(path: str) -> dict[str, Any]:
    """
    Load a JSON preset file. Returns a partial config dict.
    Raises ConfigError if the file cannot be read or parsed.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Preset file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in preset file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read preset file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Preset file must contain a JSON object, got {type(data).__name__}")

    return {k: v for k, v in data.items() if k not in ("schema_version", "_description")}


def save_preset(config: dict[str, Any], path: str, *, description: str | None = None) -> None:
    """
    Save a config dict as a JSON preset file.
    Only values that differ from the defaults are written.
    """
    preset: dict[str, Any] = {"schema_version": PRESET_SCHEMA_VERSION}
    if description:
        preset["_description"] = description

    defaults = default_config()
    for k, v in config.items():
        if k in _INTERNAL_KEYS or k.startswith("_"):
            continue
        if k in defaults and defaults[k] == v:
            continue
        preset[k] = v

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(preset, f, indent=4, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Validation  (ParamSpec-driven)
# ---------------------------------------------------------------------------

def _check_range(spec: ParamSpec, value: float | int) -> str | None:
    if spec.min is not None:
        if spec.min_exclusive and value <= spec.min:
            return f"{spec.label} must be greater than {spec.min}."
        if not spec.min_exclusive and value < spec.min:
            return f"{spec.label} must be at least {spec.min}."
    if spec.max is not None:
        if spec.max_exclusive and value >= spec.max:
            return f"{spec.label} must be less than {spec.max}."
        if not spec.max_exclusive and value > spec.max:
            return f"{spec.label} must be at most {spec.max}."
    return None


def validate_param_values(
    params: list[ParamSpec],
    values: dict[str, Any],
) -> list[ConfigFieldError]:
    """Validate *values* against a list of :class:`ParamSpec` definitions.

    Only keys present in *values* are checked; missing keys are not errors
    (they will receive their default).
    """
    errors: list[ConfigFieldError] = []

    for spec in params:
        if spec.key not in values:
            continue
        value = values[spec.key]

        if value is None:
            if not spec.nullable:
                errors.append(ConfigFieldError(
                    spec.key, value, f"{spec.label} must not be empty.",
                ))
            continue

        # bool is an int subclass; reject it for numeric fields
        expected = spec.type
        if expected is not bool and isinstance(value, bool):
            errors.append(ConfigFieldError(
                spec.key, value,
                f"{spec.label} must be {_type_label(expected)}, got boolean.",
            ))
            continue
        if not isinstance(value, expected):
            errors.append(ConfigFieldError(
                spec.key, value,
                f"{spec.label} must be {_type_label(expected)}, "
                f"got {type(value).__name__}.",
            ))
            continue

        if spec.choices is not None and value not in spec.choices:
            opts = ", ".join(repr(c) for c in spec.choices)
            errors.append(ConfigFieldError(
                spec.key, value, f"{spec.label} must be one of {opts}.",
            ))
            continue

        if isinstance(value, (int, float)):
            msg = _check_range(spec, value)
            if msg:
                errors.append(ConfigFieldError(spec.key, value, msg))

    return errors


def validate_config_fields(config: dict[str, Any]) -> list[ConfigFieldError]:
    """Validate a flat config dict.  Returns structured errors, never raises."""
    return validate_param_values(ANALYSIS_PARAMS, config)


def validate_config(config: dict[str, Any]) -> None:
    """Raise :class:`ConfigError` listing every invalid field."""
    errors = validate_config_fields(config)
    if errors:
        lines = [e.message for e in errors]
        raise ConfigError(
            "Configuration has invalid values:\n  • " + "\n  • ".join(lines)
        )


def _type_label(t) -> str:
    """Human-readable label for an expected type or tuple of types."""
    if isinstance(t, tuple):
        return " or ".join(x.__name__ for x in t)
    return t.__name__
