"""Tests for the resource descriptor builder."""

import pytest
from opentelemetry.sdk.resources import (
    DEPLOYMENT_ENVIRONMENT,
    SERVICE_NAME,
    SERVICE_VERSION,
    TELEMETRY_SDK_LANGUAGE,
    TELEMETRY_SDK_NAME,
    TELEMETRY_SDK_VERSION,
    Resource,
    ResourceDetector,
)

from fibonacci_server import __version__
from fibonacci_server.observability.resource import (
    SdkProvidedResourceDetector,
    TelemetryResourceDetector,
    build_resource,
    resource_attributes,
)


class StaticDetector(ResourceDetector):
    def __init__(self, attributes, raise_on_error=False):
        super().__init__(raise_on_error=raise_on_error)
        self.attributes = attributes

    def detect(self):
        return Resource(self.attributes)


class BrokenDetector(ResourceDetector):
    def detect(self):
        raise RuntimeError("metadata service unreachable")


@pytest.fixture(autouse=True)
def clean_otel_env(monkeypatch):
    monkeypatch.delenv("OTEL_RESOURCE_ATTRIBUTES", raising=False)
    monkeypatch.delenv("OTEL_SERVICE_NAME", raising=False)


class TestBuildResource:
    """Layer merge order and error tolerance."""

    def test_default_layers(self, test_settings):
        attributes = build_resource(test_settings).attributes

        assert attributes[SERVICE_NAME] == "fibonacci-test"
        assert attributes[SERVICE_VERSION] == __version__
        assert attributes[DEPLOYMENT_ENVIRONMENT] == "test"
        assert attributes[TELEMETRY_SDK_NAME] == "opentelemetry"
        assert attributes[TELEMETRY_SDK_LANGUAGE] == "python"
        assert attributes[TELEMETRY_SDK_VERSION]

    def test_environment_overrides_sdk_defaults(self, test_settings, monkeypatch):
        monkeypatch.setenv(
            "OTEL_RESOURCE_ATTRIBUTES",
            "deployment.environment=staging,k8s.pod.name=fib-7d9c",
        )
        monkeypatch.setenv("OTEL_SERVICE_NAME", "fib-from-env")

        attributes = build_resource(test_settings).attributes

        assert attributes[SERVICE_NAME] == "fib-from-env"
        assert attributes[DEPLOYMENT_ENVIRONMENT] == "staging"
        assert attributes["k8s.pod.name"] == "fib-7d9c"

    def test_telemetry_layer_cannot_be_overridden_by_environment(self, test_settings, monkeypatch):
        monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "telemetry.sdk.language=rust")

        attributes = build_resource(test_settings).attributes

        assert attributes[TELEMETRY_SDK_LANGUAGE] == "python"

    def test_later_detector_wins(self, test_settings):
        resource = build_resource(
            test_settings,
            detectors=[
                StaticDetector({"layer": "first", "only.first": 1}),
                StaticDetector({"layer": "second", "only.second": True}),
            ],
        )

        assert resource.attributes["layer"] == "second"
        assert resource.attributes["only.first"] == 1
        assert resource.attributes["only.second"] is True

    def test_empty_detector_contributes_nothing(self, test_settings):
        resource = build_resource(
            test_settings,
            detectors=[StaticDetector({}), StaticDetector({"a": "b"})],
        )
        assert dict(resource.attributes) == {"a": "b"}

    def test_failing_detector_is_skipped(self, test_settings):
        resource = build_resource(
            test_settings,
            detectors=[StaticDetector({"a": "b"}), BrokenDetector()],
        )
        assert dict(resource.attributes) == {"a": "b"}

    def test_failing_detector_raises_when_asked(self, test_settings):
        with pytest.raises(RuntimeError):
            build_resource(test_settings, detectors=[BrokenDetector(raise_on_error=True)])


class TestDetectors:
    def test_sdk_provided_detector(self, test_settings):
        attributes = SdkProvidedResourceDetector(test_settings).detect().attributes
        assert set(attributes) == {SERVICE_NAME, SERVICE_VERSION, DEPLOYMENT_ENVIRONMENT}

    def test_telemetry_detector(self):
        attributes = TelemetryResourceDetector().detect().attributes
        assert set(attributes) == {TELEMETRY_SDK_NAME, TELEMETRY_SDK_LANGUAGE, TELEMETRY_SDK_VERSION}


def test_resource_attributes_sorted_copy():
    resource = Resource({"b": 2, "a": 1})
    assert list(resource_attributes(resource)) == ["a", "b"]
