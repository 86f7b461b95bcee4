"""ParameterParser: the non-filter standard parameters of a request."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StandardParameters:
    """
    Parsed result-shaping parameters.

    Attributes:
        only: Fields to include (``id,name,posts.title``).
        meta_ignore: Dotted meta keys to drop from the response.
        meta_count_only: Reduce meta to the count.
        only_meta: Return the envelope without data.
        group_by: Fields to group by.
    """

    only: tuple[str, ...] = ()
    meta_ignore: tuple[str, ...] = ()
    meta_count_only: bool = False
    only_meta: bool = False
    group_by: tuple[str, ...] = ()


class ParameterParser:
    def parse(
        self, params: Mapping[str, Any], errors: list[str] | None = None
    ) -> StandardParameters:
        try:
            return StandardParameters(
                only=self.comma_separated(params.get("only")),
                meta_ignore=self.comma_separated(params.get("meta_ignore")),
                meta_count_only="meta_count_only" in params,
                only_meta="only_meta" in params,
                group_by=self.comma_separated(params.get("group_by")),
            )
        except (TypeError, ValueError) as exc:
            if errors is not None:
                errors.append(f"Error processing standard parameters: {exc}")
            logger.warning("Error processing standard parameters: %s", exc)
            return StandardParameters()

    @staticmethod
    def comma_separated(raw: Any) -> tuple[str, ...]:
        """``"a,,b"`` → ``("a", "b")``; lists are flattened the same way."""
        if raw is None:
            return ()
        items = raw if isinstance(raw, (list, tuple)) else [raw]
        out: list[str] = []
        for item in items:
            if not isinstance(item, (str, int, float)):
                raise TypeError(f"expected a comma-separated string, got {item!r}")
            out.extend(part.strip() for part in str(item).split(",") if part.strip())
        return tuple(out)
