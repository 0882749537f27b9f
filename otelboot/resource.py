"""
Resource assembly for the bootstrapper.

Sources are merged in a fixed order, later ones overriding earlier ones on
key collision:

    service.name default -> container -> process -> OTEL_RESOURCE_ATTRIBUTES
    -> host -> telemetry SDK -> AWS ECS (only on ECS) -> caller options

Detectors are the SDK's own, the contrib container-id detector and the AWS
ECS detector. The host detector is only exposed by the SDK through the
opentelemetry_resource_detector entry point group, so it is loaded by name.
"""

from __future__ import annotations

import logging
import os
from importlib.metadata import entry_points
from typing import Iterable, Mapping, Union

from opentelemetry.resource.detector.containerid import ContainerResourceDetector
from opentelemetry.sdk.extension.aws.resource.ecs import AwsEcsResourceDetector
from opentelemetry.sdk.resources import (
    SERVICE_NAME,
    OTELResourceDetector,
    ProcessResourceDetector,
    Resource,
    ResourceDetector,
)

from .context import CancelContext
from .errors import ContextError, ResourceBuildError

LOGGER = logging.getLogger(__name__)

DEPLOYMENT_ENVIRONMENT_NAME = "deployment.environment.name"

RESOURCE_DETECTOR_GROUP = "opentelemetry_resource_detector"

_ECS_METADATA_ENV = ("ECS_CONTAINER_METADATA_URI", "ECS_CONTAINER_METADATA_URI_V4")

# a detector instance, a fixed resource, or the name of a detector entry point
Source = Union[ResourceDetector, Resource, str]


class ResourceOption:
    """Caller-supplied resource source: fixed attributes and/or detectors."""

    def __init__(
        self,
        attributes: Mapping[str, object] | None = None,
        detectors: Iterable[ResourceDetector | str] = (),
    ):
        self.attributes = dict(attributes or {})
        self.detectors = list(detectors)

    def sources(self) -> list[Source]:
        sources: list[Source] = list(self.detectors)
        if self.attributes:
            sources.append(Resource(self.attributes))
        return sources


def with_attributes(attributes: Mapping[str, object]) -> ResourceOption:
    return ResourceOption(attributes=attributes)


def with_detectors(*detectors: ResourceDetector | str) -> ResourceOption:
    """Extra detectors, as instances or opentelemetry_resource_detector entry point names."""
    return ResourceOption(detectors=detectors)


def telemetry_sdk_resource() -> Resource:
    """Only the telemetry.sdk.* attributes the SDK puts on every Resource.create()."""
    attributes = Resource.create().attributes
    return Resource({k: v for k, v in attributes.items() if k.startswith("telemetry.sdk.")})


def default_sources() -> list[Source]:
    sources: list[Source] = [
        ContainerResourceDetector(),
        ProcessResourceDetector(),
        OTELResourceDetector(),
        "host",
        telemetry_sdk_resource(),
    ]
    # the ECS detector logs a warning on every call outside ECS
    if any(os.getenv(name) for name in _ECS_METADATA_ENV):
        sources.append(AwsEcsResourceDetector())
    return sources


def load_detector(name: str) -> ResourceDetector:
    matches = list(entry_points(group=RESOURCE_DETECTOR_GROUP, name=name))
    if not matches:
        raise LookupError(f"resource detector {name!r} not found in {RESOURCE_DETECTOR_GROUP}")
    detector = matches[0].load()
    if isinstance(detector, type):
        detector = detector()
    if not isinstance(detector, ResourceDetector):
        raise TypeError(f"resource detector {name!r} has incompatible type {type(detector).__name__}")
    return detector


def build_resource(
    ctx: CancelContext,
    *options: ResourceOption,
    service_name: str | None = None,
    detectors: Iterable[Source] | None = None,
) -> Resource:
    """
    Merge every source into one Resource.

    Raises the context's ContextError as soon as the context is done.
    Detector failures do not stop the merge: the remaining sources are still
    applied and a ResourceBuildError carrying the partial resource is raised
    at the end.
    """
    sources: list[Source] = []
    if service_name:
        sources.append(Resource({SERVICE_NAME: service_name}))
    sources.extend(default_sources() if detectors is None else detectors)
    for option in options:
        sources.extend(option.sources())

    resource = Resource.get_empty()
    errors: list[Exception] = []
    for source in sources:
        ctx.raise_if_done()
        if isinstance(source, Resource):
            resource = resource.merge(source)
            continue
        try:
            detector = load_detector(source) if isinstance(source, str) else source
            detected = detector.detect()
        except ContextError:
            raise
        except Exception as exc:
            LOGGER.debug("resource detector %s failed", source, exc_info=True)
            errors.append(exc)
            continue
        resource = resource.merge(detected)

    if errors:
        raise ResourceBuildError(errors, resource=resource)
    return resource


def environment_name(resource: Resource) -> str | None:
    """deployment.environment.name as a string, None when absent or not a string."""
    value = resource.attributes.get(DEPLOYMENT_ENVIRONMENT_NAME)
    return value if isinstance(value, str) else None
