"""Utility functions for segmented transfers."""

import dataclasses
import os
import typing
from typing import Any
from typing import Callable
from typing import Optional
from typing import TypeVar


T = TypeVar("T")


def env(key: str, convert: Callable[[str], T] = typing.cast(Callable[[str], T], str), **kwargs: Any) -> T:
    """Load a value from environment variables with optional default and type conversion."""
    key, partition, default = key.partition(":")

    def default_factory(
        key_val: str = key, default_val: str = default, convert_func: Callable[[str], T] = convert
    ) -> T:
        if key_val in os.environ:
            return convert_func(os.environ[key_val])

        if partition == ":":
            return convert_func(default_val)

        raise KeyError(key_val)

    return typing.cast(T, dataclasses.field(default_factory=default_factory, **kwargs))


def parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def optional_int(value: str) -> Optional[int]:
    """Convert an env string to int, treating an empty value as unset."""
    value = value.strip()
    return int(value) if value else None
