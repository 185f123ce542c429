"""
Environment variable helpers
"""

import os
from typing import Dict, Optional


def check_for_missing_env_vars(env_vars: Dict[str, Optional[str]]):
    """
    Raise if any required setting is undefined or blank.

    :param env_vars: The dictionary of environment variable names and values.
    """
    missing = [k for k, v in env_vars.items() if v is None or not str(v).strip()]
    if missing:
        raise EnvironmentError(
            f"Missing required environment variables: {', '.join(missing)}"
        )


def get_bool_env_var(var_name: str, default: bool = False) -> bool:
    val = os.environ.get(var_name)
    if val is None or not val.strip():
        return default
    return val.strip().lower() in ("true", "1", "t", "y", "yes")


def get_int_env_var(var_name: str, default: int) -> int:
    """
    Read an integer setting.

    :param var_name: The environment variable name.
    :param default: The value used when the variable is unset or blank.
    :return: The setting.
    """
    val = os.environ.get(var_name)
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError as e:
        raise EnvironmentError(f"{var_name} must be an integer, got {val!r}") from e


def get_float_env_var(var_name: str, default: float) -> float:
    val = os.environ.get(var_name)
    if val is None or not val.strip():
        return default
    try:
        return float(val)
    except ValueError as e:
        raise EnvironmentError(f"{var_name} must be a number, got {val!r}") from e
