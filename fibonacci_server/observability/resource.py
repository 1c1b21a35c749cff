"""
Resource Descriptor Builder

A Resource is the attribute set stamped on EVERY span and metric this process
exports: it answers "which process emitted this?" for the backend.

It is built from three layers, merged in order. A later layer overwrites keys
from an earlier one:

1. SDK-provided defaults   service.name, service.version, deployment.environment
2. Environment             OTEL_RESOURCE_ATTRIBUTES / OTEL_SERVICE_NAME
3. Telemetry library       telemetry.sdk.name / .language / .version

So an operator can always rename the service from the environment, but nobody
can misreport which SDK produced the data.
"""

import logging
from importlib.metadata import PackageNotFoundError, version
from typing import Dict, List, Optional, Sequence

from opentelemetry.sdk.resources import (
    DEPLOYMENT_ENVIRONMENT,
    SERVICE_NAME,
    SERVICE_VERSION,
    TELEMETRY_SDK_LANGUAGE,
    TELEMETRY_SDK_NAME,
    TELEMETRY_SDK_VERSION,
    OTELResourceDetector,
    Resource,
    ResourceDetector,
)
from opentelemetry.util.types import AttributeValue

from .. import __version__
from ..config import Settings

logger = logging.getLogger(__name__)


class SdkProvidedResourceDetector(ResourceDetector):
    """Service identity known before looking at the environment."""

    def __init__(self, settings: Settings, raise_on_error: bool = False) -> None:
        super().__init__(raise_on_error=raise_on_error)
        self._settings = settings

    def detect(self) -> Resource:
        return Resource(
            {
                SERVICE_NAME: self._settings.service_name,
                SERVICE_VERSION: __version__,
                DEPLOYMENT_ENVIRONMENT: self._settings.app_env,
            }
        )


class TelemetryResourceDetector(ResourceDetector):
    """Self-description of the telemetry SDK doing the exporting."""

    def detect(self) -> Resource:
        try:
            sdk_version = version("opentelemetry-sdk")
        except PackageNotFoundError:
            sdk_version = "unknown"
        return Resource(
            {
                TELEMETRY_SDK_NAME: "opentelemetry",
                TELEMETRY_SDK_LANGUAGE: "python",
                TELEMETRY_SDK_VERSION: sdk_version,
            }
        )


def default_detectors(settings: Settings) -> List[ResourceDetector]:
    """Detectors in merge order: SDK defaults, environment, telemetry library."""
    return [
        SdkProvidedResourceDetector(settings),
        OTELResourceDetector(),
        TelemetryResourceDetector(),
    ]


def build_resource(
    settings: Settings,
    detectors: Optional[Sequence[ResourceDetector]] = None,
) -> Resource:
    """
    Merge every detector's output into one immutable Resource.

    Detectors run synchronously, in order, with no timeout budget: they only
    read process state. A detector that fails contributes nothing, unless it
    was created with raise_on_error=True.

    Args:
        settings: Application settings (service identity)
        detectors: Override the default detector chain (tests)

    Returns:
        The merged Resource shared by the trace and metrics pipelines
    """
    if detectors is None:
        detectors = default_detectors(settings)

    resource = Resource.get_empty()
    for detector in detectors:
        try:
            detected = detector.detect()
        except Exception as e:
            if detector.raise_on_error:
                raise
            logger.warning(
                "Resource detector %s failed, skipping: %s",
                type(detector).__name__,
                e,
            )
            detected = Resource.get_empty()
        resource = resource.merge(detected)

    logger.debug("Resource built", extra={"resource_attributes": resource_attributes(resource)})
    return resource


def resource_attributes(resource: Resource) -> Dict[str, AttributeValue]:
    """Plain, key-sorted copy of a resource's attributes."""
    return {key: resource.attributes[key] for key in sorted(resource.attributes)}
