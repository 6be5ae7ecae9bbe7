"""
Mixins for common functionality.
"""

from __future__ import annotations

from typing import Any


class Configurable:
    """
    Mixin class for handling configuration overrides.

    Classes using this mixin call apply_overrides to set attributes from an
    override dict, falling back to the config object's defaults.
    """

    def apply_overrides(
        self,
        overrides: dict[str, Any],
        config_obj: Any,
        attr_list: list[str] | None = None,
    ) -> None:
        """
        Apply overrides to the instance using the config object as defaults.

        Sets self.attr = overrides[attr] when present and not None, otherwise
        config_obj.ATTR, for each attr in attr_list.

        Args:
            overrides: Dictionary of override values
            config_obj: Configuration object with uppercase attribute names
            attr_list: List of attribute names to set
        """
        if attr_list is None:
            attr_list = []

        for attr in attr_list:
            value = overrides.get(attr)
            if value is not None:
                setattr(self, attr, value)
            elif hasattr(config_obj, attr.upper()):
                setattr(self, attr, getattr(config_obj, attr.upper()))
            else:
                msg = f"No override or default for setting '{attr}'"
                raise AttributeError(msg)
