"""Core data model — tracker definitions, detections and per-service config."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator, model_validator

ONE_YEAR_SECONDS = 365 * 24 * 60 * 60


class OptOutType(StrEnum):
    SCRIPT = "script"
    COOKIE = "cookie"


class DetectionMethod(StrEnum):
    FILE = "file"
    HEADER = "header"
    EXTERNAL_HTML = "external_html"


class OptOutCookie(BaseModel):
    """Cookie a tracking service honours as an opt-out signal."""

    name: str = Field(min_length=1)
    value: str = Field(min_length=1)
    domain: str = ""  # empty = current host
    path: str = "/"
    max_age: int = ONE_YEAR_SECONDS


class TrackerDefinition(BaseModel):
    """A known tracking service and everything needed to detect and suppress it."""

    service_id: str = Field(pattern=r"^[a-z0-9_]+$")
    label: str
    description: str = ""
    opt_out_type: OptOutType
    parameters: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    id_pattern: str | None = None
    known_domains: list[str] = Field(default_factory=list)
    init_patterns: list[str] = Field(default_factory=list)
    opt_out_cookie: OptOutCookie | None = None

    @field_validator("id_pattern")
    @classmethod
    def _compile_id_pattern(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid id_pattern {value!r}: {e}") from e
        return value

    @field_validator("init_patterns")
    @classmethod
    def _compile_init_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                compiled = re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid init pattern {pattern!r}: {e}") from e
            if compiled.groups < 1:
                raise ValueError(f"init pattern {pattern!r} needs a capture group")
        return value

    @field_validator("keywords", "known_domains")
    @classmethod
    def _lowercase(cls, value: list[str]) -> list[str]:
        return [v.lower() for v in value if v]

    @model_validator(mode="after")
    def _cookie_tracker_needs_cookie(self) -> TrackerDefinition:
        if self.opt_out_type == OptOutType.COOKIE and self.opt_out_cookie is None:
            raise ValueError(f"cookie tracker '{self.service_id}' has no opt_out_cookie")
        return self


class DetectedTracker(BaseModel):
    """One piece of evidence that a tracking service is present on the site.

    ``evidence`` keys depend on the method: ``file`` for file scans,
    ``header_name``/``header_value`` for header scans and
    ``element_type``/``element_data`` for HTML scans.
    """

    service_id: str
    detection_method: DetectionMethod
    evidence: dict[str, str] = Field(default_factory=dict)
    extracted_id: str | None = None

    @property
    def location(self) -> str:
        if self.detection_method == DetectionMethod.FILE:
            return self.evidence.get("file", "")
        if self.detection_method == DetectionMethod.HEADER:
            name = self.evidence.get("header_name", "")
            return f"{name}: {self.evidence.get('header_value', '')}"
        element = self.evidence.get("element_type", "")
        data = self.evidence.get("element_data", "")
        return f"<{element}> {data}" if element else data


class DetectionSnapshot(BaseModel):
    """Persisted, deduplicated result of the most recent scan."""

    trackers: list[DetectedTracker] = Field(default_factory=list)
    last_scan_time: int | None = None

    @property
    def service_ids(self) -> set[str]:
        return {t.service_id for t in self.trackers}


class TrackerConfig(BaseModel):
    """Administrator-owned opt-out settings for one service."""

    service_id: str
    enabled: bool = False
    parameters: dict[str, str] = Field(default_factory=dict)
    id: str = ""

    @property
    def effective_id(self) -> str:
        """Manual id if set, otherwise the first non-empty parameter."""
        if self.id:
            return self.id
        for value in self.parameters.values():
            if value:
                return value
        return ""


class ScanStatus(BaseModel):
    last_scan: int | None = None
    next_scan: int | None = None
    in_progress: bool = False
