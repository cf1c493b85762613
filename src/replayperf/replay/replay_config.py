"""
ReplayPerf Replay Configuration

Immutable run configuration, loadable from YAML, plus the derived concurrency
schedule and response match policy.
"""

from dataclasses import dataclass, field, fields, replace, asdict
from typing import Dict, Any, List, Optional, Tuple

import yaml

from ..common.errors import ConfigError
from .matcher import MatchPolicy

LOG_LEVELS = ('debug', 'info', 'warning', 'error', 'critical')


@dataclass(frozen=True)
class ReplayConfig:
    """
    Configuration for one replay run.

    Defaults follow the classic livehttperf behaviour: ten repeats per worker,
    ten second timeout, a single worker, delays taken from the recording.
    """

    # Input
    input: str = '-'
    use_delay: bool = True
    max_delay: float = 0  # 0 = uncapped
    hostname: Optional[str] = None
    reuse_cookies: bool = False
    max_entries: int = 0  # stop parsing after this many entries, 0 = all

    # Sessions
    repeat: int = 10
    timeout: float = 10
    match_headers: Tuple[str, ...] = ()
    concurrency: Tuple[int, ...] = (1,)
    concurrency_max: int = 0
    concurrency_step: int = 5
    keep_alive: int = 0  # connection pool budget, 0 = close after each request

    # Output
    log_level: str = 'warning'

    def __post_init__(self):
        # Lists from YAML/argparse become tuples so the config stays hashable
        match_headers = self.match_headers or ()
        if isinstance(match_headers, str):
            match_headers = (match_headers,)
        concurrency = self.concurrency or ()
        if isinstance(concurrency, int):
            concurrency = (concurrency,)
        object.__setattr__(self, 'match_headers', tuple(match_headers))
        object.__setattr__(self, 'concurrency', tuple(int(c) for c in concurrency))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReplayConfig':
        """Create config from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'ReplayConfig':
        """Load config from YAML file."""
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data)

    def with_overrides(self, **overrides) -> 'ReplayConfig':
        """Copy of this config with non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> 'ReplayConfig':
        """
        Check value ranges.

        Returns:
            self, for chaining

        Raises:
            ConfigError: If any value is out of range
        """
        if self.repeat < 1:
            raise ConfigError(f"repeat must be at least 1, got {self.repeat}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.max_delay < 0:
            raise ConfigError(f"max_delay can't be negative, got {self.max_delay}")
        if self.max_entries < 0:
            raise ConfigError(f"max_entries can't be negative, got {self.max_entries}")
        if self.keep_alive < 0:
            raise ConfigError(f"keep_alive can't be negative, got {self.keep_alive}")
        if self.concurrency_max < 0 or self.concurrency_step < 0:
            raise ConfigError("concurrency_max and concurrency_step can't be negative")
        if any(c < 1 for c in self.concurrency):
            raise ConfigError(f"concurrency levels must be at least 1, got {list(self.concurrency)}")
        if self.log_level.lower() not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}")
        if not self.resolve_concurrency_levels():
            raise ConfigError("No concurrency levels configured")
        return self

    def resolve_concurrency_levels(self) -> List[int]:
        """
        Concurrency schedule for the run.

        With both concurrency_max and concurrency_step set, yields
        1, step, 2*step, ... up to max, always ending with max (1 is not
        repeated when step is 1). Otherwise the explicit concurrency list,
        de-duplicated and ascending.
        """
        if self.concurrency_max and self.concurrency_step:
            levels = [] if self.concurrency_step == 1 else [1]
            levels.extend(range(self.concurrency_step, self.concurrency_max + 1, self.concurrency_step))
            if not levels or levels[-1] != self.concurrency_max:
                levels.append(self.concurrency_max)
            return sorted(set(levels))

        return sorted(set(self.concurrency))

    def match_policy(self) -> MatchPolicy:
        """Response match policy chosen by match_headers."""
        return MatchPolicy.from_headers(self.match_headers)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the report's configuration summary."""
        data = asdict(self)
        data['match_headers'] = list(self.match_headers)
        data['concurrency'] = self.resolve_concurrency_levels()
        return data

    def save(self, yaml_path: str):
        """Save config to YAML file."""
        data = asdict(self)
        data['match_headers'] = list(self.match_headers)
        data['concurrency'] = list(self.concurrency)

        with open(yaml_path, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
