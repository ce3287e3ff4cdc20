"""
File-backed manifest repository.

Layout under the manifests root:

    global.yml                      defaults for every service
    regions/<region>.yml            defaults for every service in a region
    services/<svc>/manifest.yml     service base manifest (required)
    services/<svc>/<environment>.yml
    services/<svc>/<region>.yml

Every file except the base manifest is optional; a missing file is an empty
source. Files are read and parsed here and nowhere else: the merge itself
never touches the filesystem.
"""

from __future__ import annotations

import collections.abc as _abc
import logging as _logging
import pathlib as _pathlib
import re as _re

import shipwright.constants as constants
import shipwright.document as doc_model
import shipwright.errors as errors
import shipwright.manifest.implicits as implicits
import shipwright.manifest.verify as manifest_verify
import shipwright.merge as merge

_logger = _logging.getLogger(__name__)

# Service, environment and region names become file names
_NAME_PATTERN = _re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


class ManifestRepository:
    """
    Loads the five sources for a service from a manifests directory.

    Example:
        >>> repo = ManifestRepository("manifests")
        >>> manifest = repo.resolve("webapp", "dev", "dev-uk")
        >>> manifest.value("env.LOG_LEVEL")
        'debug'
    """

    def __init__(
        self,
        root: str | _pathlib.Path,
        *,
        policies: merge.FieldPolicyTable | None = None,
        required_fields: _abc.Iterable[str] = constants.DEFAULT_REQUIRED_FIELDS,
        image_prefix: str | None = None,
    ) -> None:
        self.root = _pathlib.Path(root)
        self.policies = policies if policies is not None else merge.default_policy_table()
        self.required_fields = tuple(required_fields)
        self.image_prefix = image_prefix
        # Line registries of every file loaded so far, keyed by origin
        self._line_registries: dict[str, doc_model.LineRegistry] = {}

    # -------------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------------

    @property
    def services_dir(self) -> _pathlib.Path:
        return self.root / constants.SERVICES_DIR

    @property
    def regions_dir(self) -> _pathlib.Path:
        return self.root / constants.REGIONS_DIR

    def list_services(self) -> list[str]:
        """Names of all services that have a base manifest, sorted."""
        if not self.services_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.services_dir.iterdir()
            if (entry / constants.BASE_MANIFEST_FILE).is_file()
        )

    def list_regions(self) -> list[str]:
        """Names of all regions that have a region config file, sorted."""
        if not self.regions_dir.is_dir():
            return []
        return sorted(entry.stem for entry in self.regions_dir.glob("*.yml") if entry.is_file())

    def source_paths(
        self,
        service: str,
        environment: str,
        region: str,
    ) -> dict[merge.SourceKind, _pathlib.Path]:
        """File each source is read from, in precedence order."""
        for kind, value in (("service", service), ("environment", environment), ("region", region)):
            if not _NAME_PATTERN.fullmatch(value):
                raise errors.MalformedSource(f"invalid {kind} name {value!r}")

        service_dir = self.services_dir / service
        return {
            merge.SourceKind.SERVICE_BASE: service_dir / constants.BASE_MANIFEST_FILE,
            merge.SourceKind.SERVICE_ENVIRONMENT: service_dir / f"{environment}.yml",
            merge.SourceKind.SERVICE_REGION: service_dir / f"{region}.yml",
            merge.SourceKind.GLOBAL: self.root / constants.GLOBAL_CONFIG_FILE,
            merge.SourceKind.REGION: self.regions_dir / f"{region}.yml",
        }

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load_sources(self, service: str, environment: str, region: str) -> list[merge.Source]:
        """
        Read and parse the five sources for a service.

        Raises:
            MalformedSource: The service has no base manifest, or a file
                cannot be read or parsed.
        """
        paths = self.source_paths(service, environment, region)
        base_path = paths[merge.SourceKind.SERVICE_BASE]
        if not base_path.is_file():
            raise errors.MalformedSource(
                f"no such service {service!r} (missing {constants.BASE_MANIFEST_FILE})",
                source=merge.SourceKind.SERVICE_BASE,
                origin=str(base_path),
            )

        sources = []
        for kind, path in paths.items():
            if path.is_file():
                document = self._load_file(kind, path)
            else:
                _logger.debug("No %s source at %s", kind.label, path)
                document = doc_model.NULL
            sources.append(merge.Source(kind, document, str(path)))
        return sources

    def _load_file(self, kind: merge.SourceKind, path: _pathlib.Path) -> doc_model.Document:
        origin = str(path)
        try:
            content = path.read_text(encoding="utf-8")
        except PermissionError as e:
            raise errors.MalformedSource(f"permission denied: {e}", source=kind, origin=origin) from e
        except (OSError, UnicodeDecodeError) as e:
            raise errors.MalformedSource(f"cannot read file: {e}", source=kind, origin=origin) from e

        try:
            document, lines = doc_model.load(content)
        except doc_model.DocumentLoadError as e:
            raise errors.MalformedSource(e.message, source=kind, origin=origin, line=e.line) from e

        if document is not doc_model.NULL and not isinstance(document, doc_model.Mapping):
            raise errors.MalformedSource(
                f"a manifest source must be a YAML mapping, got a {document.kind}",
                source=kind,
                origin=origin,
                line=lines.get((), (None, None))[0],
            )

        _logger.debug("Loaded %s source from %s", kind.label, origin)
        self._line_registries[origin] = lines
        return document

    def line_of(self, origin: str, path: doc_model.Path) -> int | None:
        """1-indexed line where path was set in a loaded file, if known."""
        registry = self._line_registries.get(origin)
        if registry is None or path not in registry:
            return None
        return registry[path][0]

    def _locate(self, origin: str | None, path: doc_model.Path) -> str | None:
        if origin is None:
            return None
        line = self.line_of(origin, path)
        return f"{origin}:{line}" if line is not None else origin

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, service: str, environment: str, region: str) -> merge.MergedManifest:
        """
        Load and merge the sources for a service.

        Conflict origins are reported as `file:line` where the line is known.
        """
        sources = self.load_sources(service, environment, region)
        try:
            return merge.resolve_sources(sources, policies=self.policies)
        except errors.MergeConflict as e:
            e.lower_origin = self._locate(e.lower_origin, e.path)
            e.higher_origin = self._locate(e.higher_origin, e.path)
            raise

    def build(
        self,
        service: str,
        environment: str,
        region: str,
        *,
        version: str | None = None,
        namespace: str | None = None,
        verify: bool = True,
    ) -> merge.MergedManifest:
        """
        Resolve a service and fill in its deployment context.

        With verify=True the result is checked against the required fields
        and the manifest rules.

        Raises:
            ManifestError: Any load, merge or verification failure.
        """
        manifest = self.resolve(service, environment, region)
        manifest = implicits.apply_implicits(
            manifest,
            region=region,
            environment=environment,
            namespace=namespace,
            version=version,
            image_prefix=self.image_prefix,
        )
        if verify:
            manifest_verify.verify(manifest, required=self.required_fields, region=region)
        return manifest
