#!/usr/bin/env python3
"""
Re-enqueue a transcode job for a resource whose upload is still in the bucket.

Use when a message went to the dead-letter queue (or was never sent) and the
original upload was not reclaimed. The script checks that the source object
exists, then sends the same JSON body the web app sends.

Prerequisites:
  - pip install -e . (from repo root)
  - AWS credentials (env or profile)
  - SQS_QUEUE_URL, AWS_S3_BUCKET_NAME in env (or in the file given by --env-file)

Usage:
  python scripts/requeue_transcode.py <resource_id> <key> <user_id> [--file-name NAME] [--yes]
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Workspace root (parent of scripts/).
WORKSPACE_ROOT = Path(__file__).resolve().parent.parent


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Send a transcode job message for an existing upload."
    )
    parser.add_argument("resource_id", help="Catalog resource id")
    parser.add_argument("key", help="Object key of the uploaded original")
    parser.add_argument("user_id", help="Owner of the resource")
    parser.add_argument("--file-name", help="Original file name (default: basename of key)")
    parser.add_argument("--content-type", help="Declared MIME type of the upload")
    parser.add_argument(
        "--env-file",
        default=str(WORKSPACE_ROOT / ".env"),
        help="Optional .env file with queue and bucket settings",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Send even if the source object is missing",
    )
    parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    args = parser.parse_args()

    if os.path.isfile(args.env_file):
        load_dotenv(args.env_file)
    os.environ.setdefault("AWS_REGION", "us-east-1")
    if not os.environ.get("SQS_QUEUE_URL") or not os.environ.get("AWS_S3_BUCKET_NAME"):
        print("Error: set SQS_QUEUE_URL and AWS_S3_BUCKET_NAME (or pass --env-file)", file=sys.stderr)
        return 1

    from pydantic import ValidationError
    from resource_media_aws_adapters.env_config import (
        media_bucket_name,
        object_storage_from_env,
        transcode_queue_sender_from_env,
    )
    from resource_media_shared import TranscodeJobMessage

    try:
        message = TranscodeJobMessage(
            resource_id=args.resource_id,
            key=args.key,
            user_id=args.user_id,
            file_name=args.file_name,
            content_type=args.content_type,
        )
    except ValidationError as e:
        print(f"Error: invalid job: {e}", file=sys.stderr)
        return 1

    bucket = media_bucket_name()
    if not object_storage_from_env().exists(bucket, message.key):
        if not args.force:
            print(f"Error: s3://{bucket}/{message.key} not found (use --force to send anyway)", file=sys.stderr)
            return 1
        print(f"Warning: s3://{bucket}/{message.key} not found; the worker will drop this job.")

    body = message.model_dump_json(by_alias=True, exclude_none=True)
    print(f"Message: {body}")
    if not args.yes:
        reply = input("Send to transcode queue? [y/N] ").strip().lower()
        if reply not in ("y", "yes"):
            print("Aborted.")
            return 0

    transcode_queue_sender_from_env().send(
        body,
        attributes={"resourceId": message.resource_id, "userId": message.user_id},
    )
    print(f"Sent transcode job for resource {message.resource_id}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
