import os
from pathlib import Path


DEFAULT_ZERO_DENOMINATOR = 1.0e-8
DEFAULT_MATCHING_THRESHOLD = 0.25

CONFIG_PATH = Path.home() / '.tsknn' / 'config'

# programmatic overrides, None means "not set"
_overrides = {
    'THREAD_LIMIT': None,
    'ZERO_DENOMINATOR': None,
    'MATCHING_THRESHOLD': None,
}

# values resolved from the environment or the config file, cached until reset()
_resolved = {}


def _read_config_file(key):
    """Return the raw value for `key` from ~/.tsknn/config, or None."""
    if not CONFIG_PATH.exists():
        return None
    with open(CONFIG_PATH, 'r') as f:
        for line in f:
            line = line.strip()
            if line.startswith(key + '='):
                return line.split('=', 1)[1].strip()
    return None


def _lookup(key, parse):
    """Resolve a setting from (in order of priority):

    1. A value set programmatically via the matching ``set_*`` function
    2. Environment variable ``TSKNN_<KEY>``
    3. User config file ``~/.tsknn/config`` (``KEY=value`` lines)

    Environment and file values are read once and kept until `reset()`.
    Returns None if the setting is not configured anywhere.

    Raises
    ------
    ValueError
        If the configured value cannot be parsed.
    """
    if _overrides[key] is not None:
        return _overrides[key]
    if key in _resolved:
        return _resolved[key]

    env_name = 'TSKNN_' + key
    raw = os.environ.get(env_name)
    source = f"environment variable {env_name}"
    if not raw:
        raw = _read_config_file(key)
        source = f"config file {CONFIG_PATH}"
    if not raw:
        _resolved[key] = None
        return None

    try:
        value = parse(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {key} in {source}: {raw!r}")
    _resolved[key] = value
    return value


def processor_count() -> int:
    return os.cpu_count() or 1


def _normalize_thread_limit(n: int) -> int:
    if n <= 0:
        return max(processor_count() + n, 1)
    return n


def set_global_thread_limit(n: int):
    """Set the process-wide upper bound for worker threads.

    Parameters
    ----------
    n : int
        Maximum number of threads. Values ``<= 0`` are relative to the number
        of processors (``processors + n``), floored at 1.
    """
    _overrides['THREAD_LIMIT'] = _normalize_thread_limit(int(n))


def get_global_thread_limit() -> int:
    limit = _lookup('THREAD_LIMIT', int)
    if limit is None:
        return processor_count()
    return _normalize_thread_limit(limit)


def set_zero_denominator(value: float):
    """Set the value substituted for zero denominators.

    It is also the default `epsilon` of the inverse distance weighting schemes.
    """
    if value <= 0:
        raise ValueError(f"Invalid zero denominator {value}: must be > 0.")
    _overrides['ZERO_DENOMINATOR'] = float(value)


def get_zero_denominator() -> float:
    value = _lookup('ZERO_DENOMINATOR', float)
    return DEFAULT_ZERO_DENOMINATOR if value is None else value


def set_matching_threshold(value: float):
    """Set the default matching threshold (`epsilon`) of LCS and EDR measures."""
    if value < 0:
        raise ValueError(f"Invalid matching threshold {value}: must be >= 0.")
    _overrides['MATCHING_THRESHOLD'] = float(value)


def get_matching_threshold() -> float:
    value = _lookup('MATCHING_THRESHOLD', float)
    return DEFAULT_MATCHING_THRESHOLD if value is None else value


def reset():
    """Forget programmatic values and re-read the environment and config file."""
    for key in _overrides:
        _overrides[key] = None
    _resolved.clear()
