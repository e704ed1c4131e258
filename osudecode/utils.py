from __future__ import annotations

import math
from typing import Callable, Generic, Sequence, Tuple, TypeVar, cast, overload

from .errors import ParseError, ValidationError


_OwnerT = TypeVar("_OwnerT")
_ValueT = TypeVar("_ValueT")

#: The largest magnitude a numeric field may have, matching the game client.
MAX_PARSE_VALUE = 2**31 - 1


class lazyval(Generic[_OwnerT, _ValueT]):
    """Decorator to lazily compute and cache a value."""

    def __init__(self, fget: Callable[[_OwnerT], _ValueT]):
        self._fget = fget
        self._name: str | None = None
        self.__doc__ = fget.__doc__

    def __set_name__(self, owner: type[_OwnerT], name: str) -> None:
        self._name = name

    @overload
    def __get__(self, instance: None, owner: type[_OwnerT]) -> "lazyval[_OwnerT, _ValueT]":
        ...

    @overload
    def __get__(self, instance: _OwnerT, owner: type[_OwnerT]) -> _ValueT:
        ...

    def __get__(
        self,
        instance: _OwnerT | None,
        owner: type[_OwnerT],
    ) -> _ValueT | "lazyval[_OwnerT, _ValueT]":
        if instance is None:
            return self

        if self._name is None:
            raise AttributeError("lazyval descriptor is missing attribute name")

        value = self._fget(instance)
        vars(instance)[self._name] = value
        return value


class no_default:
    """Sentinel type; this should not be instantiated.

    This type is used so functions can tell the difference between no argument
    passed and an explicit value passed even if ``None`` is a valid value.
    """

    def __new__(cls) -> "no_default":  # pragma: no cover - construction forbidden
        raise TypeError("cannot create instances of sentinel type")


def get_field(
    cs: Sequence[str],
    ix: int,
    default: str | type[no_default] = no_default,
) -> str:
    """Get the ``ix``th element of ``cs`` or ``default`` when it is missing.

    Raises
    ------
    ParseError
        Raised when the field is missing and there is no default.
    """
    try:
        return cs[ix]
    except IndexError:
        if default is no_default:
            raise ParseError(f"missing field {ix} in {list(cs)!r}")
        return cast(str, default)


def parse_float(raw: str, field: str = "value", *, allow_nan: bool = False) -> float:
    """Parse a float the way the game client does.

    Parameters
    ----------
    raw : str
        The text to parse. Surrounding whitespace is ignored.
    field : str, optional
        The name of the field, used in error messages.
    allow_nan : bool, optional
        Accept ``NaN``.

    Returns
    -------
    value : float
        The parsed value.

    Raises
    ------
    ParseError
        Raised when ``raw`` is not a number.
    ValidationError
        Raised when the magnitude of the value is above ``2 ** 31 - 1``.
    """
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ParseError(f"{field} should be a float, got {raw!r}")

    if math.isnan(value):
        if allow_nan:
            return value
        raise ParseError(f"{field} should be a float, got {raw!r}")

    if not -MAX_PARSE_VALUE <= value <= MAX_PARSE_VALUE:
        raise ValidationError(f"{field} is out of range, got {raw!r}")

    return value


def parse_int(raw: str, field: str = "value") -> int:
    """Parse an int the way the game client does.

    Raises
    ------
    ParseError
        Raised when ``raw`` is not an integer.
    ValidationError
        Raised when the magnitude of the value is above ``2 ** 31 - 1``.
    """
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ParseError(f"{field} should be an int, got {raw!r}")

    if not -MAX_PARSE_VALUE <= value <= MAX_PARSE_VALUE:
        raise ValidationError(f"{field} is out of range, got {raw!r}")

    return value


def parse_bool(raw: str, field: str = "value") -> bool:
    # cast to int then to bool because '0' is still True; bools are written
    # to the file as '0' and '1' so this is safe.
    return bool(parse_int(raw, field))


def split_key_value(line: str) -> Tuple[str, str]:
    """Split a ``Key: Value`` line, throwing away surrounding whitespace.

    A line without a ``:`` is a key with an empty value.
    """
    split = line.split(":", 1)
    try:
        key, value = split
    except ValueError:
        key = split[0]
        value = ""

    return key.strip(), value.strip()
