"""Scan orchestrator: catalog -> slugs -> variant search -> checkpoint."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from variant_scanner.catalog import filter_sets, load_catalog
from variant_scanner.config import AppConfig
from variant_scanner.models import (
    STATUS_NO_VARIANTS,
    STATUS_OK,
    STATUSES,
    CardRecord,
    CatalogEntry,
    CatalogSet,
    ScanMode,
    VariantSearchResult,
)
from variant_scanner.prober import PageProber, ProbeStats, SleepFunc
from variant_scanner.report import update_readme
from variant_scanner.search import VariantSearch
from variant_scanner.slugs import (
    MalformedLineError,
    card_url,
    collection_label,
    normalize_line,
    variant_url,
    version_of,
)
from variant_scanner.state import CheckpointStore

logger = logging.getLogger(__name__)
console = Console()


@dataclass
class ScanSummary:
    """What one run did, for the final report to the user."""

    mode: ScanMode
    processed: int = 0
    skipped: int = 0
    malformed: int = 0
    extended: int = 0
    statuses: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in STATUSES})
    outputs: List[str] = field(default_factory=list)
    probe_stats: Optional[ProbeStats] = None


def classify(result: VariantSearchResult, collection: Optional[str] = None) -> CardRecord:
    """Map a search outcome onto the record stored for the card."""
    if result.inconclusive:
        return CardRecord.error(collection)
    if result.has_v1:
        return CardRecord.ok(result.variants, collection)
    if result.exists is None or result.exists:
        return CardRecord.no_variants(collection)
    return CardRecord.error(collection)


class Scanner:
    """Runs one scan mode over the catalog and the checkpoint store.

    Cards are processed one at a time in catalog order, and the store is
    flushed after each card so an interrupted run resumes where it stopped.
    """

    def __init__(
        self,
        config: AppConfig,
        catalog: Optional[List[CatalogSet]] = None,
        prober: Optional[PageProber] = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config = config
        self._catalog = catalog
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._store = CheckpointStore(config.paths.checkpoint_file, config.paths.variants_file)
        self._prober = prober or PageProber(
            invalid_marker=config.site.invalid_marker,
            rate_limit_cooldown=config.probe.rate_limit_cooldown,
            block_cooldown=config.probe.block_cooldown,
            backoff_factor=config.probe.backoff_factor,
            max_cooldown=config.probe.max_cooldown,
            max_attempts=config.probe.max_attempts,
            timeout=config.probe.timeout,
            user_agent=config.probe.user_agent,
            sleep=sleep,
        )
        search = config.search
        self._search = VariantSearch(
            self._prober,
            max_version=search.max_version,
            extended_max_version=search.extended_max_version,
            delay_min=search.delay_min,
            delay_max=search.delay_max,
            check_base=search.check_base,
            sleep=sleep,
            rng=self._rng,
        )

    @property
    def store(self) -> CheckpointStore:
        return self._store

    async def teardown(self) -> None:
        await self._prober.close()

    async def run(
        self, mode: ScanMode, set_filter: Optional[List[str]] = None
    ) -> ScanSummary:
        """Execute ``mode`` and return a summary of what happened."""
        summary = ScanSummary(mode=mode, probe_stats=self._prober.stats)

        if mode is ScanMode.REPORT:
            self.write_report(summary)
            return summary
        if mode is ScanMode.EXTEND:
            await self.extend(summary)
            return summary

        if mode is ScanMode.RESCAN:
            if set_filter:
                removed = self._store.discard(self._catalog_slugs(set_filter))
                console.print(
                    f"[yellow]Cleared {removed} cards from the selected sets, rescanning them[/yellow]"
                )
            else:
                console.print("[yellow]Clearing checkpoint, starting full rescan[/yellow]")
                self._store.reset()
            self._store.save()
            mode = ScanMode.SCAN

        await self.scan(mode, summary, set_filter)
        return summary

    async def scan(
        self,
        mode: ScanMode,
        summary: ScanSummary,
        set_filter: Optional[List[str]] = None,
    ) -> None:
        """Search every catalog card not excluded by the skip policy."""
        catalog = self._load_sets(set_filter)
        if not catalog:
            console.print("[red]No card sets to scan[/red]")
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            for catalog_set in catalog:
                task = progress.add_task(f"[cyan]{catalog_set.name}", total=len(catalog_set.lines))
                for entry in catalog_set.entries():
                    probed = await self._process_entry(entry, mode, summary, progress)
                    progress.advance(task)
                    if probed:
                        await self._pause_between_cards()
                progress.console.print(
                    f"[bold]Finished {collection_label(catalog_set.name)}[/bold]"
                )

        summary.outputs = [str(self._store.path), str(self._store.report_path)]

    async def extend(self, summary: ScanSummary) -> None:
        """Probe the extended version range for recorded cards that reached V5."""
        max_version = self._config.search.max_version
        candidates = [
            (slug, record)
            for slug, record in self._store.records.items()
            if record.status == STATUS_OK
            and any(version_of(v) == max_version for v in record.variants)
        ]
        console.print(f"Checking {len(candidates)} cards for extra variants")

        for slug, record in candidates:
            console.print(f"Checking extra variants for {slug}...")
            try:
                variants = await self._search.extend_variants(record.variants)
            except Exception as exc:
                logger.error("Extended check failed for %s: %s", slug, exc)
                continue
            summary.processed += 1
            if variants == record.variants:
                console.print(f"  No new variants for {slug}")
                continue

            self._store.put(slug, CardRecord.ok(variants, record.collection))
            self._store.save()
            summary.extended += 1
            for url in variants:
                if url not in record.variants:
                    console.print(f"  [green]Extra variant found:[/green] {url}")

        if summary.extended:
            summary.outputs = [str(self._store.path), str(self._store.report_path)]
            console.print(f"Updated {summary.extended} cards with new variants")
        else:
            console.print("No new variants found")

    def write_report(self, summary: ScanSummary) -> None:
        """Rebuild the report files from the checkpoint without touching the network."""
        report = self._store.save_report()
        readme = update_readme(self._config.paths.readme_file, report)
        summary.processed = len(report)
        summary.outputs = [str(self._store.report_path), str(readme)]
        console.print(f"README updated with {len(report)} cards with variants")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_sets(self, set_filter: Optional[List[str]]) -> List[CatalogSet]:
        catalog = self._catalog
        if catalog is None:
            catalog = load_catalog(self._config.paths.card_sets_dir)
        return filter_sets(catalog, set_filter)

    def _catalog_slugs(self, set_filter: Optional[List[str]]) -> List[str]:
        """Slugs of every well-formed line in the selected sets."""
        slugs: List[str] = []
        for catalog_set in self._load_sets(set_filter):
            for entry in catalog_set.entries():
                try:
                    slugs.append(
                        normalize_line(
                            entry.raw_line,
                            entry.collection_code,
                            lowercase=self._config.site.lowercase_slugs,
                        )
                    )
                except MalformedLineError:
                    continue
        return slugs

    async def _process_entry(
        self,
        entry: CatalogEntry,
        mode: ScanMode,
        summary: ScanSummary,
        progress: Progress,
    ) -> bool:
        """Search and record one card.  Returns whether the network was used."""
        try:
            slug = normalize_line(
                entry.raw_line,
                entry.collection_code,
                lowercase=self._config.site.lowercase_slugs,
            )
        except MalformedLineError as exc:
            logger.warning("Skipping line in %s: %s", entry.collection_name, exc)
            summary.malformed += 1
            return False

        if self._store.should_skip(slug, mode):
            summary.skipped += 1
            return False

        collection = collection_label(entry.collection_name)
        progress.console.print(f"Checking {slug}...")
        try:
            v1_url = variant_url(card_url(self._config.site.base_url, entry.collection_name, slug), 1)
            result = await self._search.find_variants(v1_url)
            record = classify(result, collection)
        except Exception as exc:
            logger.error("Error while checking %s: %s", slug, exc)
            record = CardRecord.error(collection)

        self._store.put(slug, record)
        self._store.save()
        summary.processed += 1
        summary.statuses[record.status] += 1
        progress.console.print(_describe(slug, record))
        return True

    async def _pause_between_cards(self) -> None:
        search = self._config.search
        delay = self._rng.uniform(search.item_delay_min, search.item_delay_max)
        if delay > 0:
            await self._sleep(delay)


def _describe(slug: str, record: CardRecord) -> str:
    if record.status == STATUS_OK:
        extra = len(record.variants) - 1
        if extra:
            return f"  [green]{slug}: {extra} variant(s) beyond V1[/green]"
        return f"  {slug}: only V1"
    if record.status == STATUS_NO_VARIANTS:
        return f"  [yellow]{slug}: no variants, base card exists[/yellow]"
    return f"  [red]{slug}: not found or failed[/red]"
