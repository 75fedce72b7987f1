from pydantic import (
    BaseModel, ConfigDict, Field, PlainSerializer, TypeAdapter, ValidationError, WrapValidator, field_validator,
)
from typing import Annotated, Any, Dict, Iterator, List, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

# Scanner severities, most severe first. Labels outside this list are kept
# verbatim and rank after the known ones.
SEVERITY_ORDER = ["CRITICAL", "HIGH", "MEDIUM", "LOW", "UNKNOWN"]

# Preferred scoring authorities when picking a single CVSS score.
CVSS_AUTHORITY_ORDER = ["nvd", "ghsa", "redhat"]


def normalize_severity(severity: str) -> str:
    """Upper-case a known severity, keep any other label verbatim."""
    if severity.upper() in SEVERITY_ORDER:
        return severity.upper()
    return severity


def severity_rank(severity: str) -> int:
    try:
        return SEVERITY_ORDER.index(normalize_severity(severity))
    except ValueError:
        return len(SEVERITY_ORDER)


class RawTimestamp(datetime):
    """Parsed timestamp that dumps back to the exact text it was read from.

    Scanners and Docker write nanoseconds, which datetime truncates.
    """
    raw: str

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


def _keep_raw(value: Any, handler) -> datetime:
    if isinstance(value, RawTimestamp):
        return value
    parsed = handler(value)
    if not isinstance(value, str):
        return parsed
    stamp = RawTimestamp(
        parsed.year, parsed.month, parsed.day, parsed.hour, parsed.minute, parsed.second,
        parsed.microsecond, parsed.tzinfo,
    )
    stamp.raw = value
    return stamp


def _dump_timestamp(value: datetime) -> str:
    if isinstance(value, RawTimestamp):
        return value.raw
    return value.isoformat()


Timestamp = Annotated[
    datetime, WrapValidator(_keep_raw), PlainSerializer(_dump_timestamp, return_type=str, when_used="json")
]


class Document(BaseModel):
    """Immutable record read from a tool's output.

    Fields accept both the tool's own keys (aliases) and the snake_case
    names. Presence is tracked per field, so an absent key and an explicit
    empty value stay distinguishable.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """Serialize back to the tool's key names, omitting absent fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# --- Vulnerability scan (trivy.json) ---

class OperatingSystem(Document):
    family: Optional[str] = Field(None, alias="Family")
    name: Optional[str] = Field(None, alias="Name")
    end_of_service_life: Optional[bool] = Field(None, alias="EOSL")


class HistoryEntry(Document):
    created: Optional[Timestamp] = None
    created_by: Optional[str] = None
    author: Optional[str] = None
    comment: Optional[str] = None
    empty_layer: Optional[bool] = None


class RootFs(Document):
    type: Optional[str] = None
    diff_ids: Optional[List[str]] = None


class ContainerConfig(Document):
    cmd: Optional[List[str]] = Field(None, alias="Cmd")
    entrypoint: Optional[List[str]] = Field(None, alias="Entrypoint")
    env: Optional[List[str]] = Field(None, alias="Env")
    labels: Optional[Dict[str, str]] = Field(None, alias="Labels")
    user: Optional[str] = Field(None, alias="User")
    shell: Optional[List[str]] = Field(None, alias="Shell")


class ImageConfig(Document):
    architecture: Optional[str] = None
    created: Optional[Timestamp] = None
    history: Optional[List[HistoryEntry]] = None
    os: Optional[str] = None
    rootfs: Optional[RootFs] = None
    config: Optional[ContainerConfig] = None


class ScanMetadata(Document):
    os: Optional[OperatingSystem] = Field(None, alias="OS")
    image_id: Optional[str] = Field(None, alias="ImageID")
    diff_ids: Optional[List[str]] = Field(None, alias="DiffIDs")
    repo_tags: Optional[List[str]] = Field(None, alias="RepoTags")
    repo_digests: Optional[List[str]] = Field(None, alias="RepoDigests")
    image_config: Optional[ImageConfig] = Field(None, alias="ImageConfig")


class PackageIdentifier(Document):
    purl: Optional[str] = Field(None, alias="PURL")
    uid: Optional[str] = Field(None, alias="UID")


class Layer(Document):
    digest: Optional[str] = Field(None, alias="Digest")
    diff_id: Optional[str] = Field(None, alias="DiffID")


class DataSource(Document):
    id: Optional[str] = Field(None, alias="ID")
    name: Optional[str] = Field(None, alias="Name")
    url: Optional[str] = Field(None, alias="URL")


class CvssScore(Document):
    v2_vector: Optional[str] = Field(None, alias="V2Vector")
    v2_score: Optional[float] = Field(None, alias="V2Score")
    v3_vector: Optional[str] = Field(None, alias="V3Vector")
    v3_score: Optional[float] = Field(None, alias="V3Score")


class Vulnerability(Document):
    vulnerability_id: str = Field(alias="VulnerabilityID")
    pkg_id: Optional[str] = Field(None, alias="PkgID")
    pkg_name: str = Field(alias="PkgName")
    pkg_identifier: Optional[PackageIdentifier] = Field(None, alias="PkgIdentifier")
    installed_version: Optional[str] = Field(None, alias="InstalledVersion")
    fixed_version: Optional[str] = Field(None, alias="FixedVersion")
    status: Optional[str] = Field(None, alias="Status")
    layer: Optional[Layer] = Field(None, alias="Layer")
    severity_source: Optional[str] = Field(None, alias="SeveritySource")
    primary_url: Optional[str] = Field(None, alias="PrimaryURL")
    data_source: Optional[DataSource] = Field(None, alias="DataSource")
    title: Optional[str] = Field(None, alias="Title")
    description: Optional[str] = Field(None, alias="Description")
    severity: str = Field(alias="Severity")
    cwe_ids: Optional[List[str]] = Field(None, alias="CweIDs")
    vendor_severity: Optional[Dict[str, int]] = Field(None, alias="VendorSeverity")
    cvss: Optional[Dict[str, CvssScore]] = Field(None, alias="CVSS")
    references: Optional[List[str]] = Field(None, alias="References")
    published_date: Optional[Timestamp] = Field(None, alias="PublishedDate")
    last_modified_date: Optional[Timestamp] = Field(None, alias="LastModifiedDate")

    @property
    def has_fix(self) -> bool:
        return bool(self.fixed_version)

    def best_cvss_score(self) -> Optional[float]:
        """Pick one score: V3 over V2, nvd over ghsa over redhat over the rest."""
        if not self.cvss:
            return None
        authorities = [a for a in CVSS_AUTHORITY_ORDER if a in self.cvss]
        authorities += sorted(a for a in self.cvss if a not in CVSS_AUTHORITY_ORDER)
        for attr in ("v3_score", "v2_score"):
            for authority in authorities:
                score = getattr(self.cvss[authority], attr)
                if score is not None:
                    return score
        return None


class ScanTarget(Document):
    target: str = Field(alias="Target")
    target_class: Optional[str] = Field(None, alias="Class")
    type: Optional[str] = Field(None, alias="Type")
    vulnerabilities: Optional[List[Vulnerability]] = Field(None, alias="Vulnerabilities")


class VulnerabilityScanResult(Document):
    schema_version: int = Field(alias="SchemaVersion")
    created_at: Optional[Timestamp] = Field(None, alias="CreatedAt")
    artifact_name: str = Field(alias="ArtifactName")
    artifact_type: Optional[str] = Field(None, alias="ArtifactType")
    metadata: Optional[ScanMetadata] = Field(None, alias="Metadata")
    results: List[ScanTarget] = Field(alias="Results")

    def iter_vulnerabilities(self) -> Iterator[Vulnerability]:
        for result in self.results:
            yield from result.vulnerabilities or []

    def severity_counts(self) -> Dict[str, int]:
        counts = {severity: 0 for severity in SEVERITY_ORDER}
        for vuln in self.iter_vulnerabilities():
            severity = normalize_severity(vuln.severity)
            counts[severity] = counts.get(severity, 0) + 1
        return counts

    def sorted_by_severity(self) -> "VulnerabilityScanResult":
        """Copy of this result with each target's findings ordered by severity."""
        results = []
        for result in self.results:
            if result.vulnerabilities is None:
                results.append(result)
                continue
            ordered = sorted(result.vulnerabilities, key=lambda v: severity_rank(v.severity))
            results.append(result.model_copy(update={"vulnerabilities": ordered}))
        return self.model_copy(update={"results": results})


# --- Test suite (goss.json) ---

_int_adapter = TypeAdapter(int)
_float_adapter = TypeAdapter(float)
_timestamp_adapter = TypeAdapter(Timestamp)


def _lenient(adapter: TypeAdapter, value: Any, field: str) -> Any:
    # Unparseable text degrades to None ("unknown") instead of failing the suite.
    if value is None:
        return None
    try:
        return adapter.validate_python(value)
    except ValidationError:
        logger.warning(f"Could not interpret {field}={value!r}, treating as unknown")
        return None


class TestCase(Document):
    class_name: Optional[str] = None
    file: Optional[str] = None
    name: Optional[str] = None
    duration: Optional[float] = Field(None, alias="time")
    failure_message: Optional[str] = Field(None, alias="failure")
    system_output: Optional[str] = Field(None, alias="system_out")
    skipped: Optional[bool] = None

    @field_validator("duration", mode="before")
    @classmethod
    def coerce_duration(cls, v):
        return _lenient(_float_adapter, v, "time")

    @property
    def failed(self) -> bool:
        return self.failure_message is not None

    @property
    def passed(self) -> bool:
        return not self.failed and not self.skipped


class TestResult(Document):
    name: Optional[str] = None
    error_count: Optional[int] = Field(None, alias="errors")
    test_count: int = Field(alias="tests")
    failure_count: Optional[int] = Field(None, alias="failures")
    skipped_count: Optional[int] = Field(None, alias="skipped")
    duration: Optional[float] = Field(None, alias="time")
    timestamp: Optional[Timestamp] = None
    test_cases: Optional[List[TestCase]] = Field(None, alias="testcases")

    @field_validator("error_count", "failure_count", "skipped_count", mode="before")
    @classmethod
    def coerce_counter(cls, v, info):
        return _lenient(_int_adapter, v, info.field_name)

    @field_validator("duration", mode="before")
    @classmethod
    def coerce_duration(cls, v):
        return _lenient(_float_adapter, v, "time")

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, v):
        return _lenient(_timestamp_adapter, v, "timestamp")

    @property
    def cases(self) -> List[TestCase]:
        return self.test_cases or []

    @property
    def passing_count(self) -> int:
        return sum(1 for case in self.cases if case.passed)

    def failed_cases(self) -> List[TestCase]:
        return [case for case in self.cases if case.failed]

    def anomalies(self) -> List[str]:
        """Describe every way this suite disagrees with itself."""
        problems = []
        for field in ("error_count", "failure_count", "skipped_count"):
            if field in self.model_fields_set and getattr(self, field) is None:
                problems.append(f"{field} is unknown")
        if len(self.cases) < self.test_count:
            problems.append(f"{len(self.cases)} test cases listed but {self.test_count} tests reported")
        accounted = (
            (self.error_count or 0)
            + (self.failure_count or 0)
            + (self.skipped_count or 0)
            + self.passing_count
        )
        if accounted != self.test_count:
            problems.append(f"errors + failures + skipped + passing = {accounted}, expected {self.test_count}")
        return problems

    @property
    def is_consistent(self) -> bool:
        return not self.anomalies()


# --- Per-image record ---

class ImageRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    build_log: Optional[str] = None
    test_result: Optional[TestResult] = None
    scan_result: Optional[VulnerabilityScanResult] = None

    def artifacts(self) -> List[str]:
        """Names of the artifact fields this record carries."""
        return [f for f in ("build_log", "test_result", "scan_result") if getattr(self, f) is not None]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.build_log is not None:
            data["buildLog"] = self.build_log
        if self.test_result is not None:
            data["testResult"] = self.test_result.to_document()
        if self.scan_result is not None:
            data["scanResult"] = self.scan_result.to_document()
        return data
