#!/usr/bin/env -S uv run --quiet --script
# /// script
# dependencies = [
#   "pyyaml",
#   "click>=8.0",
#   "boto3",
# ]
# ///
"""
Helm Index Restore - Rebuild a Helm repository index.yaml from an S3 bucket.
Reads every packaged chart stored under a prefix and regenerates the index.
"""

from helm_index_restore import cli

if __name__ == "__main__":
    cli()
