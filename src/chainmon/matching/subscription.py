"""Method subscription policy: which pallet/method pairs are reported."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

ANY = "*"


class SubscriptionTarget(BaseModel):
    """A pallet/method pair; ``"*"`` in either field matches any value."""

    model_config = ConfigDict(frozen=True)

    pallet: str = ANY
    method: str = ANY

    def matches(self, pallet: str, method: str) -> bool:
        """Return True if this target covers *pallet*.*method*."""
        return self.pallet in (ANY, pallet) and self.method in (ANY, method)


class AllMethods(BaseModel):
    """Report every pallet and method."""

    model_config = ConfigDict(frozen=True)

    type: Literal["all"] = "all"


class OnlyMethods(BaseModel):
    """Report only the listed targets."""

    model_config = ConfigDict(frozen=True)

    type: Literal["only"] = "only"
    only: tuple[SubscriptionTarget, ...] = ()


class IgnoreMethods(BaseModel):
    """Report everything except the listed targets."""

    model_config = ConfigDict(frozen=True)

    type: Literal["ignore"] = "ignore"
    ignore: tuple[SubscriptionTarget, ...] = ()


MethodSubscription = Annotated[
    AllMethods | OnlyMethods | IgnoreMethods,
    Field(discriminator="type"),
]


def allows(pallet: str, method: str, policy: AllMethods | OnlyMethods | IgnoreMethods) -> bool:
    """Evaluate *pallet*.*method* against a subscription policy.

    An empty ``only`` list allows nothing; an empty ``ignore`` list allows
    everything.
    """
    if isinstance(policy, AllMethods):
        return True
    if isinstance(policy, OnlyMethods):
        return any(t.matches(pallet, method) for t in policy.only)
    if isinstance(policy, IgnoreMethods):
        return not any(t.matches(pallet, method) for t in policy.ignore)
    msg = f"Unsupported method subscription: {policy!r}"
    raise TypeError(msg)
