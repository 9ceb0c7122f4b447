"""
Hotfolder importer.

Packages arrive in the hotfolder, are claimed by the picker, and are driven
through the flow control into production storage or the error folder.

`importer.cli` is not imported here: it loads `config`, which reads settings.toml.
"""

from importer import (
    conflict_checker,
    environment,
    errors,
    file_ops,
    flow_control,
    metadata_reader,
    models,
    package_picker,
    scheduler,
    validation,
    work_repository,
)

__all__ = [
    "models",
    "errors",
    "file_ops",
    "metadata_reader",
    "validation",
    "conflict_checker",
    "work_repository",
    "package_picker",
    "flow_control",
    "scheduler",
    "environment",
]
