"""
Filter types and their aggregation.

A principal may match several active rules for one permission key, one per
role or even several on the same role. These are reduced to a single effective
filter: the most permissive one wins, and no rule at all means DENIED.
"""

from enum import IntEnum
from typing import Iterable, Optional

from lms_backend.permissions.exceptions import InvalidFilterType


class FilterType(IntEnum):
    """Data scope exposed by a permission. Higher value is more permissive."""

    DENIED = 0
    OWN = 1
    ALL = 2

    @classmethod
    def from_name(cls, value) -> "FilterType":
        if isinstance(value, FilterType):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        elif isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidFilterType(value)

    def is_more_permissive_than(self, other: "FilterType") -> bool:
        return self > other

    @property
    def grants_access(self) -> bool:
        return self is not FilterType.DENIED


class FilterAggregator:
    """Reduces the filter types of all matching rules to one effective filter"""

    @staticmethod
    def aggregate(filters: Iterable[FilterType]) -> FilterType:
        effective: Optional[FilterType] = None
        for filter_type in filters:
            if effective is None or filter_type > effective:
                effective = filter_type
        # default-deny
        return effective if effective is not None else FilterType.DENIED

    @classmethod
    def aggregate_rules(cls, rules) -> FilterType:
        """Aggregate the filter types of the active rules only"""
        return cls.aggregate(rule.filter_type for rule in rules if rule.is_active)


filter_aggregator = FilterAggregator()
