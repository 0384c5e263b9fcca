"""S3 access for listing chart archives and writing the index back."""

import boto3
from .utils import log

ARCHIVE_SUFFIX = ".tgz"
INDEX_FILENAME = "index.yaml"


class ArchiveObject:
    """Listing descriptor of one chart archive stored in the bucket."""

    def __init__(self, key: str, last_modified):
        self.key = key
        self.last_modified = last_modified

    def __repr__(self):
        return f"ArchiveObject(key={self.key!r}, last_modified={self.last_modified!r})"


def s3_url(bucket: str, key: str) -> str:
    """Build the s3:// location of an object."""
    return f"s3://{bucket}/{key}"


def create_s3_client(profile: str):
    """
    Create an S3 client using a locally configured AWS profile.

    Raises:
        botocore.exceptions.ProfileNotFound: If the profile is not configured
    """
    session = boto3.Session(profile_name=profile)
    return session.client("s3")


def list_chart_archives(client, bucket: str, prefix: str, verbose: bool = False) -> list[ArchiveObject]:
    """
    List all chart archives under a prefix.

    Every page of the listing is read; objects whose key does not end in
    .tgz are ignored. Order is the order returned by S3.

    Returns:
        list[ArchiveObject]: Archive descriptors in listing order

    Raises:
        botocore.exceptions.ClientError: If the bucket cannot be listed
    """
    archives = []
    paginator = client.get_paginator("list_objects")

    for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
        for item in page.get("Contents", []):
            key = item["Key"]
            if not key.endswith(ARCHIVE_SUFFIX):
                log(f"Skipping {s3_url(bucket, key)}", verbose)
                continue
            archives.append(ArchiveObject(key, item["LastModified"]))

    return archives


def get_chart_archive(client, bucket: str, key: str):
    """
    Fetch one archive object.

    Returns:
        tuple: (body, metadata) where body is a readable stream and metadata
               the object's user-defined metadata (x-amz-meta-* without prefix)
    """
    response = client.get_object(Bucket=bucket, Key=key)
    return response["Body"], response.get("Metadata", {})


def index_key(prefix: str) -> str:
    """Object key of the index file for a (normalized) prefix."""
    return prefix + INDEX_FILENAME


def put_index(client, bucket: str, key: str, data: bytes):
    """Upload serialized index bytes to the bucket, replacing any existing object."""
    client.put_object(Bucket=bucket, Key=key, Body=data)
