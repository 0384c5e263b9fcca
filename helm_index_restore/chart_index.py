"""
ChartEntry and ChartIndex classes modelling a Helm repository index.yaml.

Entries are built from the Chart.yaml found inside each packaged chart and
enriched with data that only exists in the bucket: the archive location, its
modification time and the digest stored in the object metadata.
"""

import yaml
from .utils import now_rfc3339_nano

DIGEST_METADATA_KEY = "chart-digest"


class ManifestError(ValueError):
    """Raised when a Chart.yaml cannot be parsed into an index entry."""
    pass


class DigestNotFoundError(LookupError):
    """Raised when an archive object carries no chart-digest metadata."""
    pass


class EmptyIndexError(RuntimeError):
    """Raised when an index is serialized without any entry."""
    pass


class ManifestLoader(yaml.SafeLoader):
    """
    SafeLoader keeping plain scalars as written.

    Versions like 1.10 must not turn into the float 1.1, so only null
    and merge keys are resolved implicitly.
    """
    pass


ManifestLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp) for tag, regexp in resolvers
        if tag in ("tag:yaml.org,2002:null", "tag:yaml.org,2002:merge")
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _as_string(value) -> str:
    """Scalar manifest value as string, None as empty string."""
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ManifestError(f"expected a scalar value, got {type(value).__name__}")
    return str(value)


def digest_from_metadata(metadata: dict) -> str:
    """
    Look up the chart digest in S3 object metadata.

    Raises:
        DigestNotFoundError: If no 'chart-digest' key is present
    """
    for key, value in (metadata or {}).items():
        if key == DIGEST_METADATA_KEY:
            return value

    raise DigestNotFoundError(f"No {DIGEST_METADATA_KEY} found in the metadata")


class Maintainer:
    """A chart maintainer as listed in Chart.yaml."""

    def __init__(self, name: str = "", email: str = "", url: str = ""):
        self.name = name
        self.email = email
        self.url = url

    @classmethod
    def from_dict(cls, data: dict) -> "Maintainer":
        if not isinstance(data, dict):
            raise ManifestError("maintainers entries must be mappings")
        return cls(
            name=_as_string(data.get("name")),
            email=_as_string(data.get("email")),
            url=_as_string(data.get("url")),
        )

    def to_dict(self) -> dict:
        return {"email": self.email, "name": self.name, "url": self.url}


class ChartEntry:
    """
    One chart version inside the index.

    Only the fields the index carries are kept; any other Chart.yaml key
    (dependencies, type, keywords, ...) is dropped while parsing.
    """

    def __init__(self):
        self.purpose = ""
        self.api_version = ""
        self.created = ""
        self.description = ""
        self.digest = ""
        self.icon = ""
        self.kube_version = ""
        self.maintainers: list[Maintainer] = []
        self.name = ""
        self.urls: list[str] = []
        self.version = ""

    @classmethod
    def from_manifest(cls, data) -> "ChartEntry":
        """
        Parse Chart.yaml content into an entry.

        Args:
            data: Raw manifest bytes or string

        Raises:
            ManifestError: If the content is not valid YAML or not a mapping
        """
        try:
            manifest = yaml.load(data, Loader=ManifestLoader)
        except yaml.YAMLError as e:
            raise ManifestError(str(e)) from e

        if manifest is None:
            manifest = {}
        if not isinstance(manifest, dict):
            raise ManifestError("Chart.yaml must contain a mapping")

        return cls.from_dict(manifest)

    @classmethod
    def from_dict(cls, manifest: dict) -> "ChartEntry":
        """Build an entry from a parsed manifest or index entry mapping."""
        entry = cls()

        annotations = manifest.get("annotations") or {}
        if not isinstance(annotations, dict):
            raise ManifestError("'annotations' must be a mapping")
        entry.purpose = _as_string(annotations.get("purpose"))

        entry.api_version = _as_string(manifest.get("apiVersion"))
        entry.created = _as_string(manifest.get("created"))
        entry.description = _as_string(manifest.get("description"))
        entry.digest = _as_string(manifest.get("digest"))
        entry.icon = _as_string(manifest.get("icon"))
        entry.kube_version = _as_string(manifest.get("kubeVersion"))
        entry.name = _as_string(manifest.get("name"))
        entry.version = _as_string(manifest.get("version"))

        maintainers = manifest.get("maintainers") or []
        if not isinstance(maintainers, list):
            raise ManifestError("'maintainers' must be a list")
        entry.maintainers = [Maintainer.from_dict(m) for m in maintainers]

        urls = manifest.get("urls") or []
        if not isinstance(urls, list):
            raise ManifestError("'urls' must be a list")
        entry.urls = [_as_string(u) for u in urls]

        return entry

    def attach_source(self, url: str, created: str, digest: str):
        """Record where the packaged chart lives in the bucket."""
        self.urls.append(url)
        self.created = created
        self.digest = digest

    def to_dict(self) -> dict:
        """Entry as an ordered mapping, keys in index.yaml order."""
        return {
            "annotations": {"purpose": self.purpose},
            "apiVersion": self.api_version,
            "created": self.created,
            "description": self.description,
            "digest": self.digest,
            "icon": self.icon,
            "kubeVersion": self.kube_version,
            "maintainers": [m.to_dict() for m in self.maintainers],
            "name": self.name,
            "urls": list(self.urls),
            "version": self.version,
        }


def represent_str(dumper, data):
    """
    Quote strings with double quotes when they need quoting at all.

    Empty strings and strings that would load as another type (timestamps,
    numbers, booleans) are written as "..." like helm's own index files.
    """
    tag = "tag:yaml.org,2002:str"
    if dumper.resolve(yaml.ScalarNode, data, (True, False)) != tag:
        return dumper.represent_scalar(tag, data, style='"')
    return dumper.represent_scalar(tag, data)


class IndexDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences below their parent key."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


IndexDumper.add_representer(str, represent_str)


class ChartIndex:
    """
    Collection of chart entries grouped by chart name.

    Versions of one chart keep the order in which they were added, no
    semantic version sorting takes place.
    """

    def __init__(self):
        self.entries: dict[str, list[ChartEntry]] = {}
        self.api_versions: list[str] = []

    def add_entry(self, entry: ChartEntry):
        self.entries.setdefault(entry.name, []).append(entry)
        self.api_versions.append(entry.api_version)

    def __len__(self):
        return sum(len(versions) for versions in self.entries.values())

    @property
    def api_version(self) -> str:
        """
        Index apiVersion: the greatest entry apiVersion in plain string order.

        Raises:
            EmptyIndexError: If no entry has been added
        """
        if not self.api_versions:
            raise EmptyIndexError("No chart archives found, refusing to generate an empty index")
        return max(self.api_versions)

    def to_dict(self, generated: str = None) -> dict:
        """
        Index as an ordered mapping: apiVersion, entries, generated.

        Args:
            generated: Generation timestamp, defaults to the current time
        """
        api_version = self.api_version
        return {
            "apiVersion": api_version,
            "entries": {
                name: [entry.to_dict() for entry in self.entries[name]]
                for name in sorted(self.entries)
            },
            "generated": generated or now_rfc3339_nano(),
        }

    def to_yaml(self, generated: str = None) -> bytes:
        """Serialize the index to index.yaml content with two-space indentation."""
        return yaml.dump(
            self.to_dict(generated),
            Dumper=IndexDumper,
            default_flow_style=False,
            sort_keys=False,
            indent=2,
            width=float("inf"),
            allow_unicode=True,
            encoding="utf-8",
        )

    @classmethod
    def from_yaml(cls, data) -> "ChartIndex":
        """
        Load an index.yaml document.

        Raises:
            ManifestError: If the document is not a valid index
        """
        try:
            document = yaml.load(data, Loader=ManifestLoader)
        except yaml.YAMLError as e:
            raise ManifestError(str(e)) from e

        if not isinstance(document, dict) or not isinstance(document.get("entries") or {}, dict):
            raise ManifestError("index.yaml must contain an 'entries' mapping")

        index = cls()
        for versions in (document.get("entries") or {}).values():
            for item in versions or []:
                if not isinstance(item, dict):
                    raise ManifestError("index entries must be mappings")
                index.add_entry(ChartEntry.from_dict(item))
        return index
