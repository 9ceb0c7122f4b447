from __future__ import annotations

from pathlib import Path

import pytest

from importer.errors import ErrorKind, ImportValidationError
from importer.validation import (
    CompositeValidation,
    FileReferenceValidation,
    WorkIdValidation,
    default_validation,
)
from types_models import Work


@pytest.fixture
def package(tmp_path: Path) -> Path:
    package_dir = tmp_path / "ppn1"
    (package_dir / "images").mkdir(parents=True)
    _ = (package_dir / "images" / "00000001.tif").write_bytes(b"tiff")
    _ = (package_dir / "ppn1.xml").write_text("<mets/>", encoding="utf-8")
    return package_dir


def _work(work_id: str = "ppn1", files: list[str] | None = None) -> Work:
    return Work(id=work_id, metadata={"files": files or []})


@pytest.mark.parametrize("work_id", [".hidden", "..", "a/b", "a\\b"])
def test_work_id_must_be_a_single_path_segment(work_id: str, package: Path) -> None:
    with pytest.raises(ImportValidationError) as excinfo:
        WorkIdValidation().validate(_work(work_id), package / "ppn1.xml")

    assert excinfo.value.kind is ErrorKind.VALIDATION


def test_local_and_remote_references_pass(package: Path) -> None:
    work = _work(
        files=[
            "images/00000001.tif",
            f"file://{package / 'images' / '00000001.tif'}",
            "https://iiif.example.org/ppn1/full.jpg",
        ]
    )

    default_validation().validate(work, package / "ppn1.xml")


def test_missing_references_are_listed(package: Path) -> None:
    work = _work(files=[f"images/{n:08d}.tif" for n in range(1, 9)])

    with pytest.raises(ImportValidationError, match=r"7 referenced files missing") as excinfo:
        FileReferenceValidation().validate(work, package / "ppn1.xml")

    assert "(+ 2 more)" in str(excinfo.value)


def test_reference_escaping_the_package_is_rejected(package: Path) -> None:
    _ = (package.parent / "outside.tif").write_bytes(b"tiff")
    work = _work(files=["../outside.tif"])

    with pytest.raises(ImportValidationError, match="outside the package"):
        FileReferenceValidation().validate(work, package / "ppn1.xml")


def test_composite_stops_at_first_failing_rule(package: Path) -> None:
    seen: list[str] = []

    class Recording:
        def __init__(self, name: str, fail: bool = False) -> None:
            self.name = name
            self.fail = fail

        def validate(self, work: Work, metadata_file: Path) -> None:
            seen.append(self.name)
            if self.fail:
                raise ImportValidationError(f"{self.name} rejected {work.id}")

    rules = CompositeValidation([Recording("first"), Recording("second", fail=True), Recording("third")])

    with pytest.raises(ImportValidationError, match="second rejected ppn1"):
        rules.validate(_work(), package / "ppn1.xml")

    assert seen == ["first", "second"]
