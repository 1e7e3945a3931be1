"""
Plan-Type Inference

Decides which plan a Stripe subscription represents. Rules are evaluated
in order and the first one returning a plan wins:

    override -> metadata tag -> configured price ID -> price text
    -> product text -> default free

Price and product lookups are injected so the rules stay independent of
the Stripe SDK.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

from app.domain.subscription import PlanType


logger = logging.getLogger(__name__)


PriceLookup = Callable[[str], Awaitable[Dict[str, Any]]]
ProductLookup = Callable[[str], Awaitable[Dict[str, Any]]]


class InferenceSource(str, Enum):
    """Which rule produced the inferred plan."""
    OVERRIDE = "override"
    METADATA = "metadata"
    PRICE_ID = "price_id"
    PRICE_TEXT = "price_text"
    PRODUCT_TEXT = "product_text"
    DEFAULT = "default"


@dataclass(frozen=True)
class PlanInference:
    """Inferred plan and the rule that decided it."""
    plan: PlanType
    source: InferenceSource

    @property
    def is_default(self) -> bool:
        return self.source == InferenceSource.DEFAULT


@dataclass
class InferenceContext:
    """Inputs available to every rule."""
    subscription: Dict[str, Any]
    override: Optional[str] = None
    price_ids: Dict[PlanType, str] = field(default_factory=dict)
    get_price: Optional[PriceLookup] = None
    get_product: Optional[ProductLookup] = None
    _price: Optional[Dict[str, Any]] = field(default=None, repr=False)

    async def price(self) -> Optional[Dict[str, Any]]:
        """Fetch the subscription's price once per inference."""
        if self._price is None and self.price_id and self.get_price is not None:
            self._price = await self.get_price(self.price_id)
        return self._price

    @property
    def price_id(self) -> Optional[str]:
        items = (self.subscription.get("items") or {}).get("data") or []
        if not items:
            return None
        price = items[0].get("price") or {}
        if isinstance(price, str):
            return price
        return price.get("id")


def _parse_tag(value: Any) -> Optional[PlanType]:
    """Exact `pro` / `premium` tag, case-insensitive."""
    if not isinstance(value, str):
        return None
    tag = value.strip().lower()
    if tag == PlanType.PREMIUM.value:
        return PlanType.PREMIUM
    if tag == PlanType.PRO.value:
        return PlanType.PRO
    return None


def _match_text(*values: Any) -> Optional[PlanType]:
    """Substring heuristic; "premium" is checked first since it never contains "pro"."""
    text = " ".join(str(v) for v in values if v).lower()
    if "premium" in text:
        return PlanType.PREMIUM
    if "pro" in text:
        return PlanType.PRO
    return None


# =============================================================================
# Rules
# =============================================================================

async def _override_rule(ctx: InferenceContext) -> Optional[PlanType]:
    return _parse_tag(ctx.override)


async def _metadata_rule(ctx: InferenceContext) -> Optional[PlanType]:
    metadata = ctx.subscription.get("metadata") or {}
    return _parse_tag(metadata.get("plan_type")) or _parse_tag(metadata.get("plan"))


async def _price_id_rule(ctx: InferenceContext) -> Optional[PlanType]:
    price_id = ctx.price_id
    if not price_id:
        return None
    for plan, configured in ctx.price_ids.items():
        if configured and configured == price_id:
            return plan
    return None


async def _price_text_rule(ctx: InferenceContext) -> Optional[PlanType]:
    price = await ctx.price()
    if not price:
        return None
    return _match_text(price.get("lookup_key"), price.get("nickname"))


async def _product_text_rule(ctx: InferenceContext) -> Optional[PlanType]:
    price = await ctx.price()
    if not price:
        return None

    product = price.get("product")
    if isinstance(product, str):
        if ctx.get_product is None:
            return None
        product = await ctx.get_product(product)
    if not product:
        return None

    metadata = product.get("metadata") or {}
    return _match_text(product.get("name"), *metadata.values())


Rule = Callable[[InferenceContext], Awaitable[Optional[PlanType]]]

DEFAULT_RULES: Sequence[Tuple[InferenceSource, Rule]] = (
    (InferenceSource.OVERRIDE, _override_rule),
    (InferenceSource.METADATA, _metadata_rule),
    (InferenceSource.PRICE_ID, _price_id_rule),
    (InferenceSource.PRICE_TEXT, _price_text_rule),
    (InferenceSource.PRODUCT_TEXT, _product_text_rule),
)


async def infer_plan_type(
    ctx: InferenceContext,
    rules: Sequence[Tuple[InferenceSource, Rule]] = DEFAULT_RULES,
) -> PlanInference:
    """
    Run the rules in order and return the first match.

    Lookup failures inside a rule propagate to the caller.

    Returns:
        PlanInference, defaulting to free when no rule matched
    """
    for source, rule in rules:
        plan = await rule(ctx)
        if plan is not None:
            logger.debug(f"Plan inferred as {plan.value} via {source.value}")
            return PlanInference(plan=plan, source=source)

    return PlanInference(plan=PlanType.FREE, source=InferenceSource.DEFAULT)
