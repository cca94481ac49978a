# sales_forecaster_src/parsing_utils.py

from typing import List, Optional, Sequence, Tuple, Union
import logging

from .exceptions import RangeError

logger = logging.getLogger(__name__)


def parse_period_range(value: Optional[Union[str, Sequence[str]]]) -> Optional[Tuple[str, str]]:
    """
    Parse a month range like '2017-01:2021-12' into a (start, end) pair.

    A two-element list or tuple (as read from YAML) is accepted unchanged.

    Parameters
    ----------
    value : str or Sequence[str], optional
        "START:END" string or (start, end) pair; None passes through

    Returns
    -------
    Tuple[str, str], optional
        (start, end) period strings

    Raises
    ------
    RangeError
        If the value is not of the form 'START:END'

    Examples
    --------
    >>> parse_period_range("2017-01:2021-12")
    ('2017-01', '2021-12')
    >>> parse_period_range(["2022-01", "2022-12"])
    ('2022-01', '2022-12')
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise RangeError(f"Expected a [start, end] pair, got {value!r}")
        return str(value[0]), str(value[1])

    parts = [p.strip() for p in str(value).split(":")]
    if len(parts) != 2 or not all(parts):
        raise RangeError(f"Invalid period range '{value}'. Expected START:END, e.g. 2017-01:2021-12")
    return parts[0], parts[1]


def parse_roster(value: Optional[Union[str, Sequence[str]]], default: str = "snaive,ets,arima,tbats") -> List[str]:
    """
    Parse a comma-separated list of model kinds.

    Examples
    --------
    >>> parse_roster("ets, arima")
    ['ets', 'arima']
    """
    if isinstance(value, (list, tuple)):
        return [str(v).strip().lower() for v in value if str(v).strip()]
    txt = value or default
    return [k.strip().lower() for k in txt.split(",") if k.strip()]


def parse_float_list(value: Optional[Union[str, Sequence[float]]], default: str = "12") -> List[float]:
    """
    Parse seasonal periods like '12' or '12,6' into floats.

    Examples
    --------
    >>> parse_float_list("12,6")
    [12.0, 6.0]
    """
    if isinstance(value, (list, tuple)):
        return [float(v) for v in value]
    txt = str(value) if value is not None else default
    return [float(x.strip()) for x in txt.split(",") if x.strip() != ""]


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level name.

    Parameters
    ----------
    log_level : str
        Logging level to validate

    Returns
    -------
    str
        Validated logging level

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
