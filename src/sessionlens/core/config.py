from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from sessionlens.features.cohorts.service import DEFAULT_WEIGHTS, CohortThresholds
from sessionlens.features.semantic_parser.types import ParserThresholds
from sessionlens.features.signals.types import SignalThresholds


@dataclass(frozen=True)
class RunConfig:
    project_id: str = "default"


@dataclass(frozen=True)
class FlushConfig:
    every_n_sessions: int = 50
    or_every_seconds: float = 30.0


@dataclass(frozen=True)
class StorageConfig:
    duckdb_path: str
    clean_slate: bool = False
    flush: FlushConfig = FlushConfig()


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class SessionLensConfig:
    run: RunConfig
    storage: StorageConfig
    logging: LoggingConfig
    parser: ParserThresholds = field(default_factory=ParserThresholds)
    signals: SignalThresholds = field(default_factory=SignalThresholds)
    cohorts: CohortThresholds = field(default_factory=CohortThresholds)
    raw: dict[str, Any] = field(default_factory=dict)  # original parsed YAML (for debugging)


def load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text())
    if not isinstance(data, dict):
        raise ValueError("Config YAML must parse to a dict at the top level.")
    return data


def _thresholds(cls, section: str, values: Any):
    """
    Build a thresholds dataclass from a YAML mapping, coercing each value to the
    type of the field default. Unknown keys are rejected.
    """
    if values is None:
        return cls()
    if not isinstance(values, dict):
        raise ValueError(f"'{section}' must be a mapping")

    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {', '.join(unknown)}")

    defaults = cls()
    kwargs: dict[str, Any] = {}
    for key, value in values.items():
        default = getattr(defaults, key)
        if isinstance(default, dict):
            kwargs[key] = value
            continue
        try:
            kwargs[key] = type(default)(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{section}.{key} must be {type(default).__name__}, got {value!r}") from e
    return cls(**kwargs)


def _cohorts(values: Any) -> CohortThresholds:
    cfg = _thresholds(CohortThresholds, "cohorts", values)
    weights = cfg.weights
    if not isinstance(weights, dict):
        raise ValueError("cohorts.weights must be a mapping")
    unknown = sorted(set(weights) - set(DEFAULT_WEIGHTS))
    if unknown:
        raise ValueError(f"Unknown keys in 'cohorts.weights': {', '.join(unknown)}")
    return CohortThresholds(
        long_session_s=cfg.long_session_s,
        short_session_s=cfg.short_session_s,
        wrong_fit_max_sessions=cfg.wrong_fit_max_sessions,
        repeat_visitor_min_sessions=cfg.repeat_visitor_min_sessions,
        top_correlations=cfg.top_correlations,
        weights={**DEFAULT_WEIGHTS, **{k: int(v) for k, v in weights.items()}},
    )


def parse_config(data: dict[str, Any]) -> SessionLensConfig:
    for key in ["storage", "logging"]:
        if key not in data:
            raise ValueError(f"Missing required top-level config section: '{key}'")

    run = data.get("run") or {}
    storage = data.get("storage") or {}
    logging_cfg = data.get("logging") or {}
    flush = storage.get("flush") or {}

    if "duckdb_path" not in storage:
        raise ValueError("storage.duckdb_path is required")

    run_cfg = RunConfig(project_id=str(run.get("project_id", "default")))

    storage_cfg = StorageConfig(
        duckdb_path=str(storage["duckdb_path"]),
        clean_slate=bool(storage.get("clean_slate", False)),
        flush=FlushConfig(
            every_n_sessions=int(flush.get("every_n_sessions", 50)),
            or_every_seconds=float(flush.get("or_every_seconds", 30.0)),
        ),
    )

    log_cfg = LoggingConfig(level=str(logging_cfg.get("level", "INFO")).upper())

    return SessionLensConfig(
        run=run_cfg,
        storage=storage_cfg,
        logging=log_cfg,
        parser=_thresholds(ParserThresholds, "parser", data.get("parser")),
        signals=_thresholds(SignalThresholds, "signals", data.get("signals")),
        cohorts=_cohorts(data.get("cohorts")),
        raw=data,
    )


def load_config(path: str | Path) -> SessionLensConfig:
    data = load_yaml(path)
    return parse_config(data)
