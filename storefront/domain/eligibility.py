"""Cash-on-delivery eligibility.

Determines per-line and whole-cart COD eligibility. A line whose COD
flag was never configured is treated as ineligible, and a single
ineligible line means the whole order must be paid online.
"""

from dataclasses import dataclass
from typing import Any, Iterable

from storefront.domain.base import ValueObject
from storefront.domain.entities import CartLine
from storefront.domain.value_objects import VariantSelection


@dataclass(frozen=True)
class EligibilitySnapshot(ValueObject):
    """COD eligibility of a cart at one moment.

    Overall eligibility is derived from the ineligible lines, so the two
    can never disagree.

    Attributes:
        ineligible: Lines that require online payment.
    """

    ineligible: tuple[CartLine, ...] = ()

    @property
    def overall(self) -> bool:
        return not self.ineligible

    def non_cod_items(self) -> list[dict[str, Any]]:
        """Describe the ineligible lines for display and API responses."""
        return [
            {
                "product_id": str(line.product_id),
                "name": line.product_name,
                "size": line.size,
                "colour": line.colour,
                "quantity": line.quantity,
                "reason": ineligibility_reason(line),
            }
            for line in self.ineligible
        ]


def ineligibility_reason(line: CartLine) -> str:
    if isinstance(line.selection, VariantSelection):
        return f'Size "{line.size}" is not COD eligible'
    return "Product is not COD eligible"


class EligibilityResolver:
    """Resolves COD eligibility for cart lines.

    Pure: the result depends only on the lines passed in.
    """

    def is_line_eligible(self, line: CartLine) -> bool:
        # Unset flags fail closed
        return line.cod_eligible is True

    def resolve(self, lines: Iterable[CartLine]) -> EligibilitySnapshot:
        """Resolve eligibility for a cart.

        Args:
            lines: Current cart lines.

        Returns:
            Snapshot listing the lines that are not COD eligible.
        """
        return EligibilitySnapshot(
            ineligible=tuple(line for line in lines if not self.is_line_eligible(line))
        )
