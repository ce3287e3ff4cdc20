"""
Post-merge verification of a manifest.

Runs after implicits have been applied. Hard failures raise; soft findings
are logged as warnings and do not stop the pipeline.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging

import pydantic as _pydantic

import shipwright.constants as constants
import shipwright.errors as errors
import shipwright.manifest.schema as schema
import shipwright.merge.resolver as resolver

_logger = _logging.getLogger(__name__)


def verify(
    manifest: resolver.MergedManifest,
    *,
    required: _abc.Iterable[str] = constants.DEFAULT_REQUIRED_FIELDS,
    region: str | None = None,
) -> schema.ManifestModel:
    """
    Check a merged manifest against the schema and the manifest rules.

    Args:
        manifest: The merged (and usually implicit-filled) manifest.
        required: Fields that must be present.
        region: Region being deployed to; defaults to the manifest's own
            `region` field.

    Returns:
        The validated ManifestModel.

    Raises:
        MissingRequiredField: A required field is absent.
        ManifestValidationError: The manifest breaks a rule or has a field
            of the wrong type.
    """
    resolver.check_required(manifest, required)

    try:
        model = schema.ManifestModel.model_validate(manifest.to_dict())
    except _pydantic.ValidationError as e:
        first = e.errors()[0]
        path = ".".join(str(part) for part in first["loc"])
        raise errors.ManifestValidationError(first["msg"], path=path or None) from e

    name = model.name or "<unnamed>"
    _verify_name(model)

    region = region or model.region
    if region is not None and region not in model.regions:
        raise errors.ManifestValidationError(
            f"unsupported region {region} for service {name}", path="regions"
        )

    if model.external:
        _logger.warning("Ignoring most validation for kube-external service %s", name)
        return model

    if model.gate is not None:
        if model.kong is None:
            raise errors.ManifestValidationError(
                "can't have a gate configuration without a kong one", path="gate"
            )
        if model.gate.public != model.publiclyAccessible:
            raise errors.ManifestValidationError(
                "publiclyAccessible and gate.public must be equal", path="gate.public"
            )

    if model.replicaCount is not None and model.replicaCount < 1:
        raise errors.ManifestValidationError(
            "need replicaCount to be at least 1", path="replicaCount"
        )

    if "regions" in manifest.document and not model.regions:
        raise errors.ManifestValidationError(f"no regions specified for {name}", path="regions")

    has_health_check = model.health is not None or model.readinessProbe is not None
    if model.httpPort is not None and not has_health_check:
        raise errors.ManifestValidationError(
            f"{name} has an httpPort but no health check", path="httpPort"
        )

    # Soft findings
    if model.httpPort is None:
        _logger.warning("%s exposes no http port", name)
    if not has_health_check:
        _logger.warning("%s does not set a health check", name)
    if model.serviceAnnotations:
        _logger.warning("serviceAnnotations is an experimental feature")
    for path, value in model.collect_all_extra_fields().items():
        _logger.warning("%s: unrecognized field %s=%r", name, path, value)

    return model


def _verify_name(model: schema.ManifestModel) -> None:
    if model.name is None:
        return
    if not constants.SERVICE_NAME_PATTERN.fullmatch(model.name):
        raise errors.ManifestValidationError(
            "please use a short, lower case service name with dashes", path="name"
        )
    if model.name.startswith("-") or model.name.endswith("-"):
        raise errors.ManifestValidationError(
            "please use dashes to separate words only", path="name"
        )
