"""Matching: account attribution and method subscription filtering."""

from __future__ import annotations

from chainmon.matching.accounts import (
    WILDCARD,
    ExtendedAccount,
    MatchedWith,
    MatchOutcome,
    NoMatch,
    WatchedAccount,
    Wildcard,
    WildcardMatch,
    is_valid_address,
    match_event,
    match_extrinsic,
    resolve_accounts,
)
from chainmon.matching.subscription import (
    AllMethods,
    IgnoreMethods,
    MethodSubscription,
    OnlyMethods,
    SubscriptionTarget,
    allows,
)

__all__ = [
    "WILDCARD",
    "AllMethods",
    "ExtendedAccount",
    "IgnoreMethods",
    "MatchOutcome",
    "MatchedWith",
    "MethodSubscription",
    "NoMatch",
    "OnlyMethods",
    "SubscriptionTarget",
    "WatchedAccount",
    "Wildcard",
    "WildcardMatch",
    "allows",
    "is_valid_address",
    "match_event",
    "match_extrinsic",
    "resolve_accounts",
]
