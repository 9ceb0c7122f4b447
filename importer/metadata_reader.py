"""Read work records from METS/MODS metadata documents.

The work described by a METS file is the one whose descriptive metadata
section (dmdSec) is linked from the top-level div of the logical structMap.
Files without a logical structMap fall back to the first MODS section.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from lxml import etree

from importer.errors import MetadataParseError
from types_models import Work, WorkIdentifier

logger = logging.getLogger(__name__)

NAMESPACES: dict[str, str] = {
    "mets": "http://www.loc.gov/METS/",
    "mods": "http://www.loc.gov/mods/v3",
    "xlink": "http://www.w3.org/1999/xlink",
}


def _xpath(node: Any, query: str, **variables: str) -> list[Any]:
    result = node.xpath(query, namespaces=NAMESPACES, **variables)
    return list(result) if isinstance(result, list) else [result]


def _first_text(node: Any, query: str) -> str | None:
    for value in _xpath(node, query):
        text = value if isinstance(value, str) else value.text
        if text and text.strip():
            return " ".join(text.split())
    return None


class MetsMetadataReader:
    """Parses METS/MODS documents into `Work` records with lxml."""

    def __init__(self) -> None:
        super().__init__()
        # Metadata arrives from external producers; never resolve entities or fetch DTDs.
        self._parser = etree.XMLParser(
            resolve_entities=False, no_network=True, remove_blank_text=True
        )

    def read(self, metadata_file: Path) -> Work:
        try:
            tree = etree.parse(str(metadata_file), parser=self._parser)
        except (OSError, etree.XMLSyntaxError) as exc:
            raise MetadataParseError(
                f"Cannot parse metadata document {metadata_file.name}: {exc}"
            ) from exc

        root = tree.getroot()
        mods = self._work_mods(root)
        if mods is None:
            raise MetadataParseError(
                f"No MODS section found in metadata document {metadata_file.name}"
            )

        work_id = _first_text(mods, "mods:recordInfo/mods:recordIdentifier")
        if work_id is None:
            raise MetadataParseError(
                f"No record identifier found in metadata document {metadata_file.name}"
            )

        identifiers: list[WorkIdentifier] = []
        for node in _xpath(mods, "mods:identifier[@type]"):
            value = (node.text or "").strip()
            id_type = str(node.get("type", "")).strip()
            if value and id_type:
                identifiers.append(WorkIdentifier(type=id_type, identifier=value))

        metadata: dict[str, Any] = {
            "files": [
                str(href) for href in _xpath(root, "//mets:fileSec//mets:FLocat/@xlink:href")
            ],
        }
        create_date = _first_text(root, "mets:metsHdr/@CREATEDATE")
        if create_date is not None:
            metadata["create_date"] = create_date
        date_issued = _first_text(mods, "mods:originInfo/mods:dateIssued")
        if date_issued is not None:
            metadata["date_issued"] = date_issued

        try:
            work = Work(
                id=work_id,
                title=_first_text(mods, "mods:titleInfo/mods:title"),
                host_id=_first_text(
                    mods,
                    "mods:relatedItem[@type='host']/mods:recordInfo/mods:recordIdentifier",
                ),
                identifiers=identifiers,
                metadata=metadata,
            )
        except ValueError as exc:
            raise MetadataParseError(
                f"Invalid work data in {metadata_file.name}: {exc}"
            ) from exc

        logger.debug(
            "Read work %s from %s (%s file references)",
            work.id,
            metadata_file.name,
            len(metadata["files"]),
        )
        return work

    @staticmethod
    def _work_mods(root: Any) -> Any | None:
        """Locate the MODS block describing the work itself."""
        top_divs = _xpath(root, "mets:structMap[@TYPE='LOGICAL']//mets:div[@DMDID]")
        if top_divs:
            dmd_id = str(top_divs[0].get("DMDID")).split()[0]
            linked = _xpath(root, "mets:dmdSec[@ID=$dmd_id]//mods:mods", dmd_id=dmd_id)
            if linked:
                return linked[0]
            logger.warning("DMDID %s is not backed by a dmdSec, using first MODS", dmd_id)
        mods_sections = _xpath(root, "//mods:mods")
        return mods_sections[0] if mods_sections else None


__all__ = ["NAMESPACES", "MetsMetadataReader"]
