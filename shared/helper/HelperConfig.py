"""Central configuration helper for the knowledge chat backend.

All settings come from environment variables. Keys are case-insensitive and
an empty value counts as unset, so `FOO=` falls back to the default.
"""

import logging
import os

_TRUE_VALUES = ("true", "1", "yes")


class HelperConfig:
    """Typed access to environment settings, plus the application logger."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _read(self, key: str) -> str | None:
        raw = os.getenv(key.upper())
        if raw is None or not raw.strip():
            return None
        return raw.strip()

    @staticmethod
    def _not_set(key: str) -> ValueError:
        return ValueError(f"Environment variable '{key.upper()}' is not set.")

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string setting, stripped of surrounding whitespace.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        val = self._read(key)
        if val is not None:
            return val
        if default is None:
            raise self._not_set(key)
        return default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric setting: values with a dot become float, others int.

        Args:
            key (str): Environment variable name.
            default (float | int | None): Fallback if the variable is not set.

        Returns:
            float | int: The parsed value.

        Raises:
            ValueError: If the variable is not set and there is no default, or
                if it does not parse as a number.
        """
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise self._not_set(key)
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a flag; "true", "1" and "yes" (any case) are True, anything else False."""
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise self._not_set(key)
            return default
        return raw.lower() in _TRUE_VALUES

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list setting written as "[elem1,elem2,...]".

        Blank elements are dropped and the rest cast with element_type.

        Raises:
            ValueError: If the variable is not set and there is no default, if
                it is not wrapped in brackets, or if an element cannot be cast.
        """
        raw = self._read(key)
        if raw is None:
            if default is None:
                raise self._not_set(key)
            return default
        if not (raw.startswith("[") and raw.endswith("]")):
            raise ValueError(f"Environment variable '{key.upper()}' must look like '[elem1{separator}elem2]'. Got: '{raw}'")
        elements = [e.strip() for e in raw[1:-1].split(separator) if e.strip()]
        try:
            return [element_type(e) for e in elements]
        except ValueError as exc:
            raise ValueError(f"Environment variable '{key.upper()}' has an element that is not {element_type.__name__}: {exc}")

    def get_logger(self) -> logging.Logger:
        return self._logger
