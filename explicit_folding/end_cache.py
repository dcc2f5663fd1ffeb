"""Per-scan cache of closing patterns resolved from opening captures."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .models import Marker, Rule, Tag
from .patterns import CompiledScope


@dataclass(frozen=True, eq=False)
class EndVariant:
    """A closing pattern resolved for one opening occurrence.

    Attributes:
        rule_index: Rule whose end template was rendered.
        text: Rendered pattern source.
        variant_id: Id unique among the rule's live variants.
        scope: The resolved end ahead of the pattern active when the variant
            was created.
    """

    rule_index: int
    text: str
    variant_id: int
    scope: CompiledScope


class EndPatternCache:
    """Resolve and share end-pattern variants during one scan.

    Variants live only while the nested scan that created them runs, so the
    cache never holds more entries than the current nesting depth.

    Examples:
        cache = EndPatternCache()
        variant, created = cache.resolve(rule, ("div",), scope)
        cache.release(variant)
    """

    def __init__(self):
        self._variants: dict[int, list[EndVariant]] = {}

    def __len__(self) -> int:
        return sum(len(variants) for variants in self._variants.values())

    def variants(self, rule_index: int) -> tuple[EndVariant, ...]:
        return tuple(self._variants.get(rule_index, ()))

    def resolve(
        self, rule: Rule, captures: Sequence[str | None], active: CompiledScope
    ) -> tuple[EndVariant, bool]:
        """Render `rule`'s end template for an opening match.

        Args:
            rule: Rule with an end template.
            captures: Text captured by the begin pattern's groups.
            active: Pattern active where the opening match occurred.

        Returns:
            tuple[EndVariant, bool]: The variant, and whether it was created
                by this call (False when an equal rendering was reused).
        """
        text = rule.end_template.render(captures)
        variants = self._variants.setdefault(rule.index, [])

        for variant in variants:
            if variant.text == text:
                return variant, False

        variant_id = max((variant.variant_id for variant in variants), default=0) + 1
        tag = Tag(Marker.END, rule.index, variant_id)
        variant = EndVariant(rule.index, text, variant_id, active.with_end_variant(tag, text))
        variants.append(variant)
        return variant, True

    def release(self, variant: EndVariant) -> None:
        variants = self._variants.get(variant.rule_index, [])
        if variant in variants:
            variants.remove(variant)
        if not variants:
            self._variants.pop(variant.rule_index, None)
