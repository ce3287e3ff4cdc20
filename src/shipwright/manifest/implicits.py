"""
Implicits: fields filled in after the merge.

The output fields (region, environment, namespace) describe where a
manifest is being deployed, so no source may set them; they are added here
once the merge is complete. A few inputs get computed defaults as well.
"""

from __future__ import annotations

import logging as _logging

import shipwright.merge.resolver as resolver

_logger = _logging.getLogger(__name__)


def apply_implicits(
    manifest: resolver.MergedManifest,
    *,
    region: str,
    environment: str,
    namespace: str | None = None,
    version: str | None = None,
    image_prefix: str | None = None,
) -> resolver.MergedManifest:
    """
    Return a copy of manifest with the deployment context filled in.

    Args:
        manifest: Result of resolve().
        region: Region being deployed to.
        environment: Environment being deployed to.
        namespace: Kubernetes namespace; defaults to the environment name.
        version: Overrides whatever version the sources set (e.g. a tag
            passed on the command line).
        image_prefix: When the manifest sets no image, it defaults to
            `<image_prefix>/<name>`.
    """
    result = manifest
    result = result.set("region", region)
    result = result.set("environment", environment)
    result = result.set("namespace", namespace or environment)

    if version is not None:
        _logger.debug("Overriding version with %s", version)
        result = result.set("version", version)

    name = result.value("name")
    if image_prefix and result.get("image") is None and isinstance(name, str):
        result = result.set("image", f"{image_prefix.rstrip('/')}/{name}")

    return result
