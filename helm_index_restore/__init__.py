"""
Helm Index Restore - Rebuild a Helm repository index.yaml from an S3 bucket.
Reads every packaged chart stored under a prefix and regenerates the index
that references them.
"""

import os
from pathlib import Path
import yaml
import click
from botocore.exceptions import BotoCoreError, ClientError

from .utils import log, normalize_prefix, format_rfc3339_nano
from .storage import (
    INDEX_FILENAME,
    create_s3_client,
    get_chart_archive,
    index_key,
    list_chart_archives,
    put_index,
    s3_url,
)
from .chart_archive import ArchiveReadError, extract_chart_manifest
from .chart_index import (
    ChartEntry,
    ChartIndex,
    DigestNotFoundError,
    EmptyIndexError,
    ManifestError,
    digest_from_metadata,
)

__version__ = "0.1.0"

INDEX_FILE_MODE = 0o664


class RestoreConfig:
    """Run configuration, built once from the command line."""

    def __init__(self, bucket: str, profile: str, prefix: str = "", upload: bool = False, workdir: Path = None, verbose: bool = False):
        self.bucket = bucket
        self.profile = profile
        self.prefix = normalize_prefix(prefix)
        self.upload = upload
        self.workdir = workdir or Path.cwd()
        self.verbose = verbose

    @property
    def index_key(self) -> str:
        return index_key(self.prefix)

    @property
    def index_url(self) -> str:
        return s3_url(self.bucket, self.index_key)

    @property
    def index_path(self) -> Path:
        return self.workdir / INDEX_FILENAME


def build_index(config: RestoreConfig, client) -> ChartIndex:
    """
    Read all chart archives below the configured prefix into a ChartIndex.

    Archives without a Chart.yaml are skipped; every other failure aborts
    the run.

    Raises:
        click.ClickException: On any storage, archive, manifest or metadata error
    """
    try:
        archives = list_chart_archives(client, config.bucket, config.prefix, config.verbose)
    except (ClientError, BotoCoreError) as e:
        raise click.ClickException(f"List bucket content error: {e}")

    index = ChartIndex()

    for archive in archives:
        url = s3_url(config.bucket, archive.key)
        click.echo(f"Parsing information from {url}")

        try:
            body, metadata = get_chart_archive(client, config.bucket, archive.key)
        except (ClientError, BotoCoreError) as e:
            raise click.ClickException(f"Get object error: {e}")

        try:
            manifest = extract_chart_manifest(body)
        except ArchiveReadError as e:
            raise click.ClickException(f"Reading chart archive {url}: {e}")
        except (ClientError, BotoCoreError) as e:
            raise click.ClickException(f"Get object error: {e}")
        finally:
            body.close()

        if manifest is None:
            log(f"No Chart.yaml found in {url}, skipping", config.verbose)
            continue

        try:
            entry = ChartEntry.from_manifest(manifest)
        except ManifestError as e:
            raise click.ClickException(f"Error parsing chart.yaml in {url}: {e}")

        try:
            digest = digest_from_metadata(metadata)
        except DigestNotFoundError as e:
            raise click.ClickException(f"Error parsing metadata of {url}: {e}")

        entry.attach_source(url, format_rfc3339_nano(archive.last_modified), digest)
        index.add_entry(entry)

    return index


def render_index(index: ChartIndex, generated: str = None) -> bytes:
    """
    Serialize the index to index.yaml content.

    Raises:
        click.ClickException: If the index is empty or cannot be serialized
    """
    try:
        return index.to_yaml(generated)
    except EmptyIndexError as e:
        raise click.ClickException(str(e))
    except yaml.YAMLError as e:
        raise click.ClickException(f"Error creating index.yaml: {e}")


def write_index_file(path: Path, data: bytes):
    """Write index bytes to a local file, creating it with mode 0664 or truncating it."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, INDEX_FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


def store_index(config: RestoreConfig, client, data: bytes) -> str:
    """
    Write the index to the configured destination.

    Returns:
        str: Location the index was written to

    Raises:
        click.ClickException: If writing or uploading fails
    """
    if config.upload:
        click.echo(f"Uploading new {INDEX_FILENAME} to {config.index_url}")
        try:
            put_index(client, config.bucket, config.index_key, data)
        except (ClientError, BotoCoreError) as e:
            raise click.ClickException(f"Error writing index.yaml to bucket: {e}")
        return config.index_url

    log(f"Writing new {INDEX_FILENAME} to {config.index_path}", config.verbose)
    try:
        write_index_file(config.index_path, data)
    except OSError as e:
        raise click.ClickException(f"Error writing index.yaml to file: {e}")
    return str(config.index_path)


def restore_index(config: RestoreConfig, client) -> str:
    """
    Run the complete restore: list, extract, assemble, write.

    Nothing is written unless every archive was processed successfully.

    Returns:
        str: Location of the written index
    """
    click.echo(f"Starting the restoration of {config.index_url}")

    index = build_index(config, client)

    click.echo(f"Generating new {INDEX_FILENAME}")
    log(f"Index holds {len(index)} chart versions", config.verbose)
    data = render_index(index)

    return store_index(config, client, data)


@click.command()
@click.version_option(version=__version__, prog_name='helm-index-restore')
@click.option(
    '--bucket',
    required=True,
    help='Name of the S3 bucket. Example: for s3://helmcharts-demo/my-demo enter helmcharts-demo'
)
@click.option(
    '--directory',
    'prefix',
    default='',
    help='Directory in the bucket holding the charts and the index, if not the bucket root. Example: for s3://helmcharts-demo/my-demo enter my-demo'
)
@click.option(
    '--profile',
    required=True,
    help='Locally configured AWS profile used to connect to S3. Example: default'
)
@click.option(
    '--upload',
    is_flag=True,
    help='Upload the new index.yaml directly to S3 instead of writing it to the working directory'
)
@click.option(
    '--workdir',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help='Directory to write index.yaml to (default: current directory)'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose output'
)
def cli(bucket, prefix, profile, upload, workdir, verbose):
    """Restore a Helm repository index.yaml from the charts stored in S3.

    Every .tgz below the directory is opened, its Chart.yaml read and the
    chart-digest object metadata used as digest.

    Examples:

      helm-index-restore --bucket helmcharts-demo --profile default

      helm-index-restore --bucket helmcharts-demo --directory my-demo --profile default --upload
    """
    config = RestoreConfig(
        bucket=bucket,
        profile=profile,
        prefix=prefix,
        upload=upload,
        workdir=workdir.resolve() if workdir else None,
        verbose=verbose,
    )

    try:
        client = create_s3_client(config.profile)
    except BotoCoreError as e:
        raise click.ClickException(f"Configuration error: {e}")

    location = restore_index(config, client)

    if config.upload:
        click.echo(f"Successfully restored {location}")
    else:
        click.echo(f"Successfully generated {location}")


__all__ = ["cli", "RestoreConfig", "build_index", "render_index", "store_index", "restore_index"]
