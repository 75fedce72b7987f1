import asyncio
import logging
from typing import List, Optional
from pydantic import BaseModel
from dibreport.buildlog import beautify_build_logs
from dibreport.core.assembler import assemble
from dibreport.core.exceptions import ArtifactFetchError, MalformedDocument, ManifestError
from dibreport.core.interfaces import ArtifactSourceBase
from dibreport.core.models import ImageRecord
from dibreport.core.registry import ReportRegistry
from dibreport.plugins.parsers.goss import GossParser
from dibreport.plugins.parsers.trivy import TrivyParser
from dibreport.plugins.sources.manifest import (
    BUILD_LOG_FILE,
    SCAN_RESULT_FILE,
    TEST_RESULT_FILE,
    parse_manifest,
)

logger = logging.getLogger(__name__)

ARTIFACT_FILES = [BUILD_LOG_FILE, TEST_RESULT_FILE, SCAN_RESULT_FILE]


class LoadSummary(BaseModel):
    run: str
    images: int = 0
    artifacts_loaded: int = 0
    failures: List[str] = []


class ReportLoader:
    """Fills a ReportRegistry with one report run read from an artifact source.

    Artifacts are fetched concurrently and published to the registry as soon
    as each one is parsed. A missing, unreadable or malformed artifact only
    leaves its own field empty.
    """

    def __init__(self, source: ArtifactSourceBase, registry: ReportRegistry, concurrency: int = 8):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.source = source
        self.registry = registry
        self.concurrency = concurrency
        self.trivy = TrivyParser()
        self.goss = GossParser()

    def resolve_run(self, run: Optional[str] = None) -> str:
        """Return `run`, or the newest run the source knows about."""
        if run:
            return run
        runs = self.source.list_runs()
        if not runs:
            raise ManifestError("No report runs found, pass the run name explicitly")
        logger.info(f"Using latest report run {runs[0]}")
        return runs[0]

    def load_run_sync(self, run: Optional[str] = None) -> LoadSummary:
        return asyncio.run(self.load_run(run))

    async def load_run(self, run: Optional[str] = None) -> LoadSummary:
        run = self.resolve_run(run)
        manifest = await asyncio.to_thread(self.source.read_manifest, run)
        names = parse_manifest(manifest)
        logger.info(f"Report run {run} lists {len(names)} images")

        self.registry.set_image_names(names, run=run)
        summary = LoadSummary(run=run, images=len(names))
        semaphore = asyncio.Semaphore(self.concurrency)
        await asyncio.gather(*(self._load_image(run, name, semaphore, summary) for name in names))

        logger.info(
            f"Loaded {summary.artifacts_loaded} artifacts for {summary.images} images "
            f"({len(summary.failures)} failures)"
        )
        return summary

    async def _load_image(self, run: str, image: str, semaphore: asyncio.Semaphore, summary: LoadSummary):
        await asyncio.gather(
            *(self._load_artifact(run, image, filename, semaphore, summary) for filename in ARTIFACT_FILES)
        )
        # An image without any artifact still gets a record once its loads are done.
        if self.registry.get_image(image) is None:
            self.registry.upsert_image(ImageRecord(name=image), run=run)

    async def _load_artifact(
        self, run: str, image: str, filename: str, semaphore: asyncio.Semaphore, summary: LoadSummary
    ):
        async with semaphore:
            try:
                raw = await asyncio.to_thread(self.source.read_artifact, run, image, filename)
            except ArtifactFetchError as e:
                logger.error(f"{image}: {e}")
                summary.failures.append(f"{image}/{filename}: {e}")
                return

        if raw is None:
            return
        try:
            record = self.build_record(image, filename, raw)
        except MalformedDocument as e:
            logger.error(f"{image}: ignoring {filename}: {e}")
            summary.failures.append(f"{image}/{filename}: {e}")
            return

        self.registry.upsert_image(record, run=run)
        summary.artifacts_loaded += 1

    def build_record(self, image: str, filename: str, raw: str) -> ImageRecord:
        """Parse one artifact into a partial record for `image`."""
        if filename == BUILD_LOG_FILE:
            return assemble(image, build_log=beautify_build_logs(raw))
        if filename == TEST_RESULT_FILE:
            return assemble(image, test_result=self.goss.parse(raw))
        if filename == SCAN_RESULT_FILE:
            return assemble(image, scan_result=self.trivy.parse(raw))
        raise ValueError(f"Unknown artifact {filename}")
