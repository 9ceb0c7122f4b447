from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

import pytest

from importer.environment import build_context
from importer.models import ImporterContext
from types_models import ImporterConfig

METS_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<mets:mets xmlns:mets="http://www.loc.gov/METS/"
           xmlns:mods="http://www.loc.gov/mods/v3"
           xmlns:xlink="http://www.w3.org/1999/xlink">
  <mets:metsHdr CREATEDATE="2024-03-01T10:00:00"/>
  <mets:dmdSec ID="DMDLOG_0000">
    <mets:mdWrap MDTYPE="MODS">
      <mets:xmlData>
        <mods:mods>
          <mods:titleInfo><mods:title>{title}</mods:title></mods:titleInfo>
          {identifiers}
          <mods:originInfo><mods:dateIssued>1887</mods:dateIssued></mods:originInfo>
          <mods:recordInfo>
            <mods:recordIdentifier source="gbv-ppn">{work_id}</mods:recordIdentifier>
          </mods:recordInfo>
        </mods:mods>
      </mets:xmlData>
    </mets:mdWrap>
  </mets:dmdSec>
  <mets:fileSec>
    <mets:fileGrp USE="ORIGINAL">
      {files}
    </mets:fileGrp>
  </mets:fileSec>
  <mets:structMap TYPE="LOGICAL">
    <mets:div ID="LOG_0000" DMDID="DMDLOG_0000" TYPE="monograph"/>
  </mets:structMap>
</mets:mets>
"""


def render_mets(
    work_id: str,
    *,
    title: str = "Reise nach Italien",
    files: Sequence[str] = (),
    identifiers: Sequence[tuple[str, str]] = (),
) -> str:
    file_entries = "\n      ".join(
        f'<mets:file ID="FILE_{i:04d}" MIMETYPE="image/tiff">'
        + f'<mets:FLocat LOCTYPE="URL" xlink:href="{href}"/></mets:file>'
        for i, href in enumerate(files)
    )
    identifier_entries = "\n          ".join(
        f'<mods:identifier type="{id_type}">{value}</mods:identifier>'
        for id_type, value in identifiers
    )
    return METS_TEMPLATE.format(
        work_id=work_id,
        title=title,
        files=file_entries,
        identifiers=identifier_entries,
    )


@pytest.fixture
def importer_config(tmp_path: Path) -> ImporterConfig:
    cfg = ImporterConfig(
        hotfolder_path=tmp_path / "hotfolder",
        importing_folder_path=tmp_path / "importing",
        work_files_path=tmp_path / "works",
        temp_work_folder_path=tmp_path / "temp",
        error_folder_path=tmp_path / "error",
        cache_path=tmp_path / "cache",
        db_path=tmp_path / "works.db",
        log_file=str(tmp_path / "importer.log"),
        persist_retry_attempts=1,
    )
    cfg.ensure_directories()
    return cfg


@pytest.fixture
def context(importer_config: ImporterConfig) -> ImporterContext:
    return build_context(importer_config)


@pytest.fixture
def make_package(importer_config: ImporterConfig) -> Callable[..., Path]:
    """Create a package directory in the hotfolder and return its path."""

    def _make(
        name: str,
        *,
        work_id: str | None = None,
        title: str = "Reise nach Italien",
        files: Sequence[str] = ("images/00000001.tif",),
        identifiers: Sequence[tuple[str, str]] = (),
        with_metadata: bool = True,
        payload: bytes = b"II*\x00tiff",
    ) -> Path:
        package_dir = importer_config.hotfolder_path / name
        package_dir.mkdir(parents=True)
        for href in files:
            target = package_dir / href
            target.parent.mkdir(parents=True, exist_ok=True)
            _ = target.write_bytes(payload)
        if with_metadata:
            _ = (package_dir / f"{name}.xml").write_text(
                render_mets(
                    work_id or name,
                    title=title,
                    files=files,
                    identifiers=identifiers,
                ),
                encoding="utf-8",
            )
        return package_dir

    return _make
