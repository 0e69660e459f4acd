"""Image archive transfer: save images on the online machine, load them offline."""
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from mystic.core.config import MysticConfig
from mystic.core.errors import PreconditionError
from mystic.core.filesystem import describe_size, find_archives
from mystic.core.logger import get_logger
from mystic.core.output import (
    print_batch_summary,
    print_error,
    print_info,
    print_progress,
    print_success,
    print_warning,
)
from mystic.core.results import BatchReport, UnitResult
from mystic.services.docker import DockerClient
from mystic.services.docker_compose import ComposeParser

logger = get_logger(__name__)

IMAGE_ARCHIVE_SUFFIX = ".tar"


def image_archive_name(image: str) -> str:
    """Filesystem-safe archive name: ollama/ollama:latest -> ollama_ollama_latest.tar"""
    return image.replace("/", "_").replace(":", "_") + IMAGE_ARCHIVE_SUFFIX


def filter_images(images: List[str], pattern: Optional[str]) -> List[str]:
    """Keep images containing pattern (case-insensitive)."""
    if not pattern:
        return list(images)
    needle = pattern.lower()
    return [image for image in images if needle in image.lower()]


def check_docker(docker: DockerClient, console: Console) -> None:
    """Fail unless docker is installed and the daemon answers.

    Raises:
        PreconditionError: Docker missing or daemon down
    """
    if not docker.is_installed():
        raise PreconditionError("Docker is not installed or not in PATH")
    print_success(console, "Docker is available")

    if not docker.is_daemon_running():
        raise PreconditionError("Docker daemon is not running")
    print_success(console, "Docker daemon is running")


class ImageSaver:
    """Pulls compose images and writes each to a single-image .tar archive."""

    def __init__(
        self,
        config: MysticConfig,
        docker: Optional[DockerClient] = None,
        console: Optional[Console] = None,
        dry_run: bool = False,
    ):
        self.config = config
        self.docker = docker or DockerClient()
        self.console = console or Console()
        self.dry_run = dry_run

    def check_requirements(self) -> None:
        print_info(self.console, "Checking requirements...")
        if not self.config.compose_file.is_file():
            raise PreconditionError(f"Docker compose file not found: {self.config.compose_file}")
        print_success(self.console, f"Found {self.config.compose_file}")
        check_docker(self.docker, self.console)
        self.console.print()

    def collect_images(self, pattern: Optional[str] = None) -> List[str]:
        """Unique image references from the compose file, optionally filtered.

        Raises:
            PreconditionError: No images left after filtering
        """
        document = ComposeParser(self.config.environment).load(self.config.compose_file)
        images = filter_images(document.images(), pattern)

        if not images:
            if pattern:
                raise PreconditionError(f"No images matching filter '{pattern}'")
            raise PreconditionError(f"No images found in {self.config.compose_file}")

        print_success(
            self.console,
            f"Found {len(images)} unique images in {self.config.compose_file}",
        )
        return images

    def save(self, images: List[str], output_dir: Path) -> BatchReport:
        """Pull and save each image into output_dir.

        A failed pull or save marks that image failed and moves on; a failed
        save removes the partial archive.
        """
        output_dir = Path(output_dir)
        report = BatchReport(title="Image save", dry_run=self.dry_run)

        print_info(self.console, f"Images to save ({len(images)}):")
        for image in images:
            self.console.print(f"  - {image}  ->  {image_archive_name(image)}")
        self.console.print()

        if self.dry_run:
            for image in images:
                print_info(self.console, f"[DRY RUN] Would pull and save: {image}")
                report.add(UnitResult.skipped(image, "dry run"))
            return report

        output_dir.mkdir(parents=True, exist_ok=True)
        print_success(self.console, f"Output directory ready: {output_dir}")
        self.console.print()

        total = len(images)
        for index, image in enumerate(images, start=1):
            print_progress(self.console, index, total, f"Processing: {image}")
            report.add(self._save_one(image, output_dir))
            self.console.print()

        return report

    def _save_one(self, image: str, output_dir: Path) -> UnitResult:
        target = output_dir / image_archive_name(image)

        print_info(self.console, "  Pulling...")
        if not self.docker.pull(image):
            print_error(self.console, f"  Failed to pull {image}")
            logger.info(f"Pull failed: {image}")
            return UnitResult.failed(image, "pull failed")
        print_success(self.console, "  Pulled successfully")

        print_info(self.console, f"  Saving to {target.name}...")
        if not self.docker.save(image, target):
            print_error(self.console, f"  Failed to save {image}")
            target.unlink(missing_ok=True)
            logger.info(f"Save failed: {image}")
            return UnitResult.failed(image, "save failed")

        size = describe_size(target)
        print_success(self.console, f"  Saved ({size})")
        logger.info(f"Saved {image} to {target} ({size})")
        return UnitResult.ok(image, detail=str(target))

    def run(self, output_dir: Path, pattern: Optional[str] = None) -> BatchReport:
        """Full save workflow: checks, discovery, pull/save, summary."""
        self.check_requirements()
        images = self.collect_images(pattern)
        self.console.print()

        if self.dry_run:
            print_warning(self.console, "This is a DRY RUN - no changes will be made")

        report = self.save(images, output_dir)

        rows = [("Output Dir", output_dir)]
        if not self.dry_run and Path(output_dir).is_dir():
            rows.append(("Total Size", describe_size(output_dir)))
        print_batch_summary(
            self.console, "Save Complete!", report, "Images Saved", rows, unit="image(s)"
        )
        self.console.print()
        print_info(self.console, "Next steps:")
        self.console.print(f"  1. Copy the {output_dir} directory to portable media")
        self.console.print("  2. Transfer to the offline/air-gapped machine")
        self.console.print("  3. Run `mystic images load` to import the images")
        return report


class ImageLoader:
    """Loads image archives from a directory into the local docker runtime."""

    def __init__(
        self,
        docker: Optional[DockerClient] = None,
        console: Optional[Console] = None,
        dry_run: bool = False,
    ):
        self.docker = docker or DockerClient()
        self.console = console or Console()
        self.dry_run = dry_run

    def find_archives(self, input_dir: Path, pattern: Optional[str] = None) -> List[Path]:
        """Image archives to load.

        Raises:
            PreconditionError: Input directory missing or no matching archives
        """
        input_dir = Path(input_dir)
        if not input_dir.is_dir():
            raise PreconditionError(
                f"Input directory not found: {input_dir}. "
                "Run `mystic images save` on an online machine first to create image archives"
            )

        archives = find_archives(input_dir, IMAGE_ARCHIVE_SUFFIX, pattern)
        if not archives:
            if pattern:
                raise PreconditionError(f"No .tar files matching '{pattern}' in {input_dir}")
            raise PreconditionError(f"No .tar files found in {input_dir}")

        print_success(self.console, f"Found {len(archives)} image archive(s) in {input_dir}")
        return archives

    def load(self, archives: List[Path]) -> BatchReport:
        """Load each archive in order; failures do not stop the batch."""
        report = BatchReport(title="Image load", dry_run=self.dry_run)

        print_info(self.console, "Archives to load:")
        for archive in archives:
            self.console.print(f"  - {archive.name}  ({describe_size(archive)})")
        self.console.print()

        if self.dry_run:
            for archive in archives:
                report.add(UnitResult.skipped(archive.name, "dry run"))
            return report

        total = len(archives)
        for index, archive in enumerate(archives, start=1):
            print_progress(
                self.console, index, total, f"Loading: {archive.name} ({describe_size(archive)})"
            )
            ok, output = self.docker.load(archive)
            for line in output.splitlines():
                print_info(self.console, f"  {line}")

            if ok:
                print_success(self.console, "  Loaded successfully")
                logger.info(f"Loaded {archive}")
                report.add(UnitResult.ok(archive.name))
            else:
                print_error(self.console, f"  Failed to load {archive.name}")
                logger.info(f"Load failed: {archive}")
                report.add(UnitResult.failed(archive.name, "docker load failed"))
            self.console.print()

        return report

    def run(self, input_dir: Path, pattern: Optional[str] = None) -> BatchReport:
        """Full load workflow: checks, discovery, load, summary."""
        print_info(self.console, "Checking requirements...")
        check_docker(self.docker, self.console)
        self.console.print()

        archives = self.find_archives(input_dir, pattern)
        self.console.print()

        if self.dry_run:
            print_warning(self.console, "This is a DRY RUN - no changes will be made")

        report = self.load(archives)

        print_batch_summary(
            self.console,
            "Load Complete!",
            report,
            "Images Loaded",
            [("Input Dir", input_dir)],
            unit="image(s)",
        )

        if not self.dry_run:
            self.console.print()
            print_info(self.console, "Loaded images:")
            for line in self.docker.list_images(limit=20):
                self.console.print(f"  {line}")
        return report
