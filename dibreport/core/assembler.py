"""Merge per-image artifacts into ImageRecords."""
from typing import Optional
from dibreport.core.models import ImageRecord, TestResult, VulnerabilityScanResult


def assemble(
    name: str,
    build_log: Optional[str] = None,
    test_result: Optional[TestResult] = None,
    scan_result: Optional[VulnerabilityScanResult] = None,
    base: Optional[ImageRecord] = None,
) -> ImageRecord:
    """Build the record for `name`, layering the given artifacts over `base`.

    Artifacts left as None are not touched, so calling this once per
    finished download grows the record one field at a time.
    """
    if not name:
        raise ValueError("Image name must not be empty")
    if base is not None and base.name != name:
        raise ValueError(f"Cannot merge record for {base.name} into {name}")

    artifacts = {}
    if build_log is not None:
        artifacts["build_log"] = build_log
    if test_result is not None:
        artifacts["test_result"] = test_result
    if scan_result is not None:
        artifacts["scan_result"] = scan_result

    if base is None:
        return ImageRecord(name=name, **artifacts)
    return base.model_copy(update=artifacts)


def merge(existing: Optional[ImageRecord], update: ImageRecord) -> ImageRecord:
    """Apply every field explicitly set on `update` to `existing`."""
    if existing is None:
        return update
    fields = {f: getattr(update, f) for f in update.model_fields_set if f != "name"}
    return existing.model_copy(update=fields)
