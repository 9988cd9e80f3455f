"""Resolution of a product's (parameter, option) claims to internal rows."""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from catalogsync import crud
from catalogsync.core.logging import ContextualLogger
from catalogsync.models.parameter import Parameter, ParameterOption
from catalogsync.platform.entities import ParameterValueRecord


@dataclass
class ResolvedParameters:
    """Pairs that resolved to internal ids and the claims that did not."""

    pairs: List[Tuple[int, int]] = field(default_factory=list)
    unmapped: List[ParameterValueRecord] = field(default_factory=list)
    mismatched: int = 0


class ParameterGraphResolver:
    """Maps external (parameter id, option id) pairs of one product to internal ids.

    Candidates are loaded with two queries per product (parameters of the product's
    category, options of any of those parameters) instead of one query per pair.
    """

    def __init__(self, platform: str, logger: ContextualLogger):
        """Create the resolver for ``platform``."""
        self.platform = platform
        self.logger = logger

    async def resolve(
        self,
        db: AsyncSession,
        category_id: int,
        values: List[ParameterValueRecord],
        product_key: str = "",
    ) -> ResolvedParameters:
        """Resolve ``values`` within ``category_id``.

        A claim is unmapped when its parameter is unknown in the category, its option is
        unknown, or the option belongs to another parameter. Unmapped claims are counted
        and logged, never raised.

        Args:
            db: Database session
            category_id: Internal id of the product's category
            values: The product's claims
            product_key: External id of the product, for log lines

        Returns:
            ``ResolvedParameters``
        """
        resolved = ResolvedParameters()
        if not values:
            return resolved

        parameters: List[Parameter] = await crud.parameter.find_in_category(
            db, category_id, self.platform, (v.parameter_external_id for v in values)
        )
        options: List[ParameterOption] = await crud.parameter_option.find_in_category(
            db, category_id, self.platform, (v.option_external_id for v in values)
        )
        parameters_by_key: Dict[str, Parameter] = {p.external_id: p for p in parameters}
        options_by_key: Dict[str, List[ParameterOption]] = defaultdict(list)
        for option in options:
            options_by_key[option.external_id].append(option)

        for value in values:
            parameter = parameters_by_key.get(value.parameter_external_id)
            if parameter is None:
                resolved.unmapped.append(value)
                continue

            candidates = options_by_key.get(value.option_external_id)
            if not candidates:
                resolved.unmapped.append(value)
                continue

            option = next((o for o in candidates if o.parameter_id == parameter.id), None)
            if option is None:
                self.logger.warning(
                    f"[Parameters] Option {value.option_external_id} of product {product_key} "
                    f"does not belong to parameter {value.parameter_external_id}"
                )
                resolved.mismatched += 1
                resolved.unmapped.append(value)
                continue

            resolved.pairs.append((parameter.id, option.id))

        if resolved.unmapped:
            self.logger.warning(
                f"[Parameters] {len(resolved.unmapped)} of {len(values)} parameter values of "
                f"product {product_key} could not be mapped"
            )
        return resolved

    async def replace_product_parameters(
        self,
        db: AsyncSession,
        product_id: int,
        category_id: int,
        values: List[ParameterValueRecord],
        product_key: str = "",
    ) -> ResolvedParameters:
        """Resolve ``values`` and replace the product's whole association set with them.

        An unchanged set is left as stored.
        """
        resolved = await self.resolve(db, category_id, values, product_key)
        wanted = sorted(set(resolved.pairs))
        if await crud.product_parameter.get_pairs(db, product_id) != wanted:
            await crud.product_parameter.replace_for_product(db, product_id, resolved.pairs)
        return resolved
