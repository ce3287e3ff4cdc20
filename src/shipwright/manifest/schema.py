"""
Schema of the well-known manifest fields.

These Pydantic models describe what the chart renderer expects to find in a
merged manifest. They serve two purposes:

- RECOGNIZED_FIELDS: the closed list of top-level fields the Field Policy
  Table is validated against at startup
- post-merge verification: the merged manifest is validated against
  ManifestModel to catch type errors before anything is rendered

Design decision: every model uses `extra="allow"` so unknown fields are
preserved rather than rejected. Unknown fields are reported as warnings by
verification (see `collect_all_extra_fields()`), not as errors, because
charts other than the base chart may consume them.
"""

import typing as _typing

import pydantic as _pydantic

import shipwright.constants as constants

# =============================================================================
# Base class with introspection
# =============================================================================


class ManifestSection(_pydantic.BaseModel):
    """
    Base class for all manifest schema types.

    Unknown fields are kept in `model_extra` so they can be audited.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but are not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}

    def collect_all_extra_fields(
        self,
        prefix: str = "",
    ) -> dict[str, _typing.Any]:
        """
        Recursively collect unknown fields from this section and its children.

        Returns a flat dict with dotted paths as keys, e.g.:
            {"health.uri_typo": "/health", "configs.files.0.dst": "x.json"}
        """
        result: dict[str, _typing.Any] = {}

        for key, value in self.get_extra_fields().items():
            path = f"{prefix}.{key}" if prefix else key
            result[path] = value

        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            child_prefix = f"{prefix}.{field_name}" if prefix else field_name

            if isinstance(value, ManifestSection):
                result.update(value.collect_all_extra_fields(child_prefix))
            elif isinstance(value, list):
                for index, item in enumerate(value):
                    if isinstance(item, ManifestSection):
                        result.update(item.collect_all_extra_fields(f"{child_prefix}.{index}"))

        return result


# =============================================================================
# Sections
# =============================================================================


class HealthCheck(ManifestSection):
    """
    Readiness endpoint used by the chart's probes.

    YAML section: health.*
    """

    uri: str
    """Path of the health endpoint, e.g. /health."""

    port: int | None = None
    """Port to probe. Defaults to httpPort in the chart."""

    wait: int | None = _pydantic.Field(default=None, ge=0)
    """Seconds to wait before the first probe."""


class Resources(ManifestSection):
    """Kubernetes resource requests and limits."""

    requests: dict[str, str | int | float] = _pydantic.Field(default_factory=dict)
    limits: dict[str, str | int | float] = _pydantic.Field(default_factory=dict)


class ConfigFile(ManifestSection):
    """A file inlined into the service ConfigMap."""

    dest: str
    """Filename inside the mounted config directory."""

    name: str | None = None
    """Template the value was rendered from."""

    value: str | None = None
    """Rendered file content."""


class ConfigMap(ManifestSection):
    """
    Config files to inline in a kubernetes ConfigMap.

    YAML section: configs.*
    """

    mount: str | None = None
    files: list[ConfigFile] = _pydantic.Field(default_factory=list)


class Contact(ManifestSection):
    name: str
    slack: str | None = None


class Metadata(ManifestSection):
    """
    Ownership metadata, used for notifications and code links.

    YAML section: metadata.*
    """

    team: str
    repo: str | None = None
    support: str | None = None
    notifications: str | None = None
    contacts: list[Contact] = _pydantic.Field(default_factory=list)


class Port(ManifestSection):
    name: str
    port: int
    targetPort: int | None = None
    protocol: str | None = None


class Sidecar(ManifestSection):
    """A named overlay fragment expanded by the chart into an extra container."""

    name: str


class RbacRule(ManifestSection):
    apiGroups: list[str] = _pydantic.Field(default_factory=list)
    resources: list[str] = _pydantic.Field(default_factory=list)
    verbs: list[str] = _pydantic.Field(default_factory=list)


class Gate(ManifestSection):
    public: bool = False
    websockets: bool = False


# =============================================================================
# Manifest
# =============================================================================


class ManifestModel(ManifestSection):
    """
    A fully merged service manifest.

    Every field is optional at the schema level; which fields must be present
    is decided by verification (see `constants.DEFAULT_REQUIRED_FIELDS`).
    """

    # Locked: only the service base manifest may set these
    name: str | None = None
    regions: list[str] = _pydantic.Field(default_factory=list)
    metadata: Metadata | None = None
    kong: dict[str, _typing.Any] | None = None

    # Global flags
    publiclyAccessible: bool = False
    external: bool = False
    disabled: bool = False

    # Image and runtime
    chart: str | None = None
    image: str | None = None
    imageSize: int | None = None
    version: str | None = None
    command: list[str] = _pydantic.Field(default_factory=list)
    language: str | None = None
    dataHandling: dict[str, _typing.Any] | None = None
    resources: Resources | None = None
    replicaCount: int | None = None

    # Environment and files
    env: dict[str, _typing.Any] = _pydantic.Field(default_factory=dict)
    secretFiles: dict[str, str] = _pydantic.Field(default_factory=dict)
    configs: ConfigMap | None = None
    vault: dict[str, _typing.Any] | None = None

    # Networking
    httpPort: int | None = None
    ports: list[Port] = _pydantic.Field(default_factory=list)
    externalPort: int | None = None
    health: HealthCheck | None = None
    readinessProbe: dict[str, _typing.Any] | None = None
    livenessProbe: dict[str, _typing.Any] | None = None
    hosts: list[str] = _pydantic.Field(default_factory=list)
    sourceRanges: list[str] = _pydantic.Field(default_factory=list)
    gate: Gate | None = None

    # Pod shape
    dependencies: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    workers: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    sidecars: list[Sidecar] = _pydantic.Field(default_factory=list)
    lifecycle: dict[str, _typing.Any] | None = None
    rollingUpdate: dict[str, _typing.Any] | None = None
    autoScaling: dict[str, _typing.Any] | None = None
    tolerations: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    hostAliases: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    initContainers: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    volumes: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    volumeMounts: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    persistentVolumes: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    cronJobs: list[dict[str, _typing.Any]] = _pydantic.Field(default_factory=list)
    serviceAnnotations: dict[str, str] = _pydantic.Field(default_factory=dict)
    labels: dict[str, str] = _pydantic.Field(default_factory=dict)
    rbac: list[RbacRule] = _pydantic.Field(default_factory=list)

    # Backing services
    kafka: dict[str, _typing.Any] | None = None
    database: dict[str, _typing.Any] | None = None
    redis: dict[str, _typing.Any] | None = None

    # Output fields, set by implicits after the merge
    region: str | None = None
    environment: str | None = None
    namespace: str | None = None
    secrets: dict[str, str] = _pydantic.Field(default_factory=dict)


RECOGNIZED_FIELDS: frozenset[str] = frozenset(ManifestModel.model_fields)
"""Top-level fields a manifest may carry (inputs and outputs)."""

MERGEABLE_FIELDS: frozenset[str] = RECOGNIZED_FIELDS - constants.OUTPUT_FIELDS
"""Top-level fields a source may set."""
