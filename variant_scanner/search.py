"""Variant search: probes V1..V5 for a card and V6..V9 as a follow-up pass."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import List, Optional

from variant_scanner.models import ProbeResult, VariantSearchResult
from variant_scanner.prober import PageProber, SleepFunc
from variant_scanner.slugs import sort_by_version, strip_version, variant_url, version_of

logger = logging.getLogger(__name__)


class VariantSearch:
    """Drives a ``PageProber`` over the candidate versions of one card.

    Missing versions do not stop the search; the catalog is not guaranteed
    to number its variants contiguously.
    """

    def __init__(
        self,
        prober: PageProber,
        max_version: int = 5,
        extended_max_version: int = 9,
        delay_min: float = 3.0,
        delay_max: float = 5.0,
        check_base: bool = True,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._prober = prober
        self._max_version = max_version
        self._extended_max_version = extended_max_version
        self._delay_min = delay_min
        self._delay_max = delay_max
        self._check_base = check_base
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def find_variants(self, v1_url: str) -> VariantSearchResult:
        """Probe V1 and, if it exists, versions 2..max_version in order."""
        first = await self._prober.probe(v1_url)
        if first is ProbeResult.INCONCLUSIVE:
            return VariantSearchResult(exists=None, inconclusive=True)

        if first is ProbeResult.NOT_FOUND:
            if not self._check_base:
                return VariantSearchResult(exists=None)
            base = await self._prober.probe(strip_version(v1_url))
            if base is ProbeResult.INCONCLUSIVE:
                return VariantSearchResult(exists=None, inconclusive=True)
            return VariantSearchResult(exists=base is ProbeResult.EXISTS)

        variants = [v1_url]
        inconclusive = False
        for version in range(2, self._max_version + 1):
            url = variant_url(v1_url, version)
            result = await self._paced_probe(url)
            if result is ProbeResult.EXISTS:
                variants.append(url)
                logger.info("Variant found: %s", url)
            elif result is ProbeResult.INCONCLUSIVE:
                inconclusive = True

        return VariantSearchResult(
            exists=True, has_v1=True, variants=variants, inconclusive=inconclusive
        )

    async def extend_variants(self, variants: List[str]) -> List[str]:
        """Probe the extended range for a card whose list already holds V5.

        Returns a new list sorted by version when something was found, and
        the given list itself otherwise.
        """
        template = next(
            (v for v in variants if version_of(v) == self._max_version), None
        )
        if template is None:
            return variants

        present = {version_of(v) for v in variants}
        found: List[str] = []
        for version in range(self._max_version + 1, self._extended_max_version + 1):
            if version in present:
                continue
            url = variant_url(template, version)
            result = await self._paced_probe(url)
            if result is ProbeResult.EXISTS:
                found.append(url)
                logger.info("Extra variant found: %s", url)
            elif result is ProbeResult.INCONCLUSIVE:
                logger.warning("Could not confirm %s, leaving it for a later pass", url)

        if not found:
            return variants
        return sort_by_version(list(variants) + found)

    async def _paced_probe(self, url: str) -> ProbeResult:
        await self.pause()
        return await self._prober.probe(url)

    async def pause(self) -> None:
        """Sleep a random interval inside the configured jitter window."""
        delay = self._rng.uniform(self._delay_min, self._delay_max)
        if delay > 0:
            await self._sleep(delay)
