"""Asset pipeline for Folio.

This module builds the site's front-end assets: it bundles the JavaScript
entry module and copies vendor files verbatim into the asset output
directory. It is meant to run as its own process (``folio assets``) so the
site build can treat it as an external pipeline.

Key classes:
- AssetPipeline: Runs the bundler and the vendor copier.
- VendorCopier: Copies vendor files and directories byte for byte.
- AssetResult: What a pipeline run produced.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from rjsmin import jsmin

from .bundler import ScriptBundler
from .config import AssetSettings, VendorCopyRule
from .errors import AssetError
from .utils import ensure_clean_dir, is_contained


@dataclass
class AssetResult:
    """Result of an asset pipeline run.

    Attributes:
        output_dir: Directory the assets were written to.
        bundle: Path of the bundled script.
        modules: Modules included in the bundle.
        copied: Destination paths of vendor copies.
    """

    output_dir: Path
    bundle: Path
    modules: list[Path] = field(default_factory=list)
    copied: list[Path] = field(default_factory=list)


class VendorCopier:
    """Copies vendor files into the asset output directory unmodified.

    Attributes:
        project_root: Root that rule sources are relative to.
        output_dir: Root that rule destinations are relative to.
    """

    def __init__(self, project_root: Path, output_dir: Path):
        self.project_root = project_root
        self.output_dir = output_dir

    def check(self, rules: tuple[VendorCopyRule, ...]) -> None:
        """Verify every rule before anything is copied.

        Raises:
            AssetError: If a source is missing or a destination escapes the output directory.
        """
        for rule in rules:
            source = self.project_root / rule.source
            if not source.exists():
                raise AssetError(source, "Vendor source not found")
            if not is_contained(rule.dest):
                raise AssetError(Path(rule.dest), "Vendor destination escapes the asset output directory")

    def copy(self, rule: VendorCopyRule) -> Path:
        """Copy one rule's source to its destination.

        Directories are copied recursively. Parent directories are created.

        Returns:
            The destination path.
        """
        source = self.project_root / rule.source
        dest = self.output_dir / rule.dest
        if source.is_dir():
            shutil.copytree(source, dest, dirs_exist_ok=True)
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
        return dest


class AssetPipeline:
    """Builds the site's JavaScript bundle and vendor files.

    All sources are checked before the output directory is touched, so a
    missing file aborts the run without leaving a partial tree behind.

    Attributes:
        project_root: Root directory of the project.
        settings: Asset settings.
        output_dir: Directory where assets are written.
    """

    def __init__(self, project_root: Path, settings: AssetSettings):
        self.project_root = project_root
        self.settings = settings
        self.output_dir = project_root / settings.output_dir
        self.bundler = ScriptBundler(project_root)
        self.copier = VendorCopier(project_root, self.output_dir)

    def run(self) -> AssetResult:
        """Execute the asset pipeline.

        Returns:
            AssetResult describing the written files.

        Raises:
            AssetError: If the entry module, an import, or a vendor source is missing.
        """
        entry = self.project_root / self.settings.entry
        if not is_contained(self.settings.bundle):
            raise AssetError(Path(self.settings.bundle), "Bundle destination escapes the asset output directory")
        self.copier.check(self.settings.vendor)
        bundle = self.bundler.bundle(entry)

        ensure_clean_dir(self.output_dir)
        bundle_path = self.output_dir / self.settings.bundle
        bundle_path.parent.mkdir(parents=True, exist_ok=True)
        code = jsmin(bundle.code) if self.settings.minify else bundle.code
        with open(bundle_path, "w", encoding="utf-8", newline="\n") as f:
            f.write(code)

        copied = [self.copier.copy(rule) for rule in self.settings.vendor]
        return AssetResult(
            output_dir=self.output_dir,
            bundle=bundle_path,
            modules=bundle.modules,
            copied=copied,
        )
