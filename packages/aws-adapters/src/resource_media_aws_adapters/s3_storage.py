"""S3 implementation of ObjectStorage."""

import os
import shutil
import urllib.error
import urllib.request

import boto3
from botocore.exceptions import ClientError
from resource_media_shared.interfaces import ObjectNotFoundError

# Minimum S3 multipart part size (except last) is 5 MB
MULTIPART_CHUNK_SIZE = 8 * 1024 * 1024  # 8 MB
MULTIPART_THRESHOLD = 100 * 1024 * 1024  # 100 MB: use multipart above this
DOWNLOAD_URL_EXPIRES_IN = 3600
DOWNLOAD_TIMEOUT_SECONDS = 300
_STREAM_CHUNK_SIZE = 1024 * 1024

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


def _extra_args(content_type: str | None) -> dict[str, str]:
    return {"ContentType": content_type} if content_type else {}


class S3ObjectStorage:
    """ObjectStorage implementation using S3."""

    def __init__(
        self,
        *,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        presigned_downloads: bool = True,
        download_timeout: int = DOWNLOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._client = boto3.client(
            "s3",
            region_name=region_name,
            endpoint_url=endpoint_url,
        )
        self._presigned_downloads = presigned_downloads
        self._download_timeout = download_timeout

    def presign_download(
        self,
        bucket: str,
        key: str,
        *,
        expires_in: int = DOWNLOAD_URL_EXPIRES_IN,
    ) -> str:
        """Return a presigned GET URL for the given bucket and key."""
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires_in,
        )

    def upload(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
    ) -> None:
        """Upload bytes to the given bucket and key."""
        self._client.put_object(Bucket=bucket, Key=key, Body=body, **_extra_args(content_type))

    def upload_file(
        self,
        bucket: str,
        key: str,
        path: str,
        *,
        content_type: str | None = None,
    ) -> None:
        """Upload a file from local path; uses multipart for files over 100 MB."""
        file_size = os.path.getsize(path)
        if file_size >= MULTIPART_THRESHOLD:
            self._upload_multipart(bucket, key, path, content_type)
        else:
            with open(path, "rb") as f:
                self._client.put_object(
                    Bucket=bucket, Key=key, Body=f.read(), **_extra_args(content_type)
                )

    def _upload_multipart(
        self, bucket: str, key: str, path: str, content_type: str | None
    ) -> None:
        """Upload using S3 multipart API for large files."""
        resp = self._client.create_multipart_upload(
            Bucket=bucket, Key=key, **_extra_args(content_type)
        )
        upload_id = resp["UploadId"]
        parts: list[dict] = []
        try:
            with open(path, "rb") as f:
                part_number = 1
                while True:
                    chunk = f.read(MULTIPART_CHUNK_SIZE)
                    if not chunk:
                        break
                    part_resp = self._client.upload_part(
                        Bucket=bucket,
                        Key=key,
                        UploadId=upload_id,
                        PartNumber=part_number,
                        Body=chunk,
                    )
                    parts.append({"ETag": part_resp["ETag"], "PartNumber": part_number})
                    part_number += 1
            self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except Exception:
            self._client.abort_multipart_upload(
                Bucket=bucket, Key=key, UploadId=upload_id
            )
            raise

    def exists(self, bucket: str, key: str) -> bool:
        """Return True if the object exists, False otherwise."""
        try:
            self._client.head_object(Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in _NOT_FOUND_CODES:
                return False
            raise

    def download(self, bucket: str, key: str) -> bytes:
        """Download object from bucket/key and return its body as bytes."""
        try:
            resp = self._client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if e.response["Error"]["Code"] in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(bucket, key) from e
            raise
        return resp["Body"].read()

    def download_file(self, bucket: str, key: str, path: str) -> None:
        """
        Download object to a local path without holding it in memory.

        By default fetches through a time-limited presigned GET URL; with
        presigned_downloads=False uses the boto3 managed transfer instead
        (e.g. for emulators whose presigned URLs are not reachable).

        Only 404 maps to ObjectNotFoundError. A 403 is also what S3 returns for an
        expired signature or a denied GET, so it is not taken as "missing"; grant
        s3:ListBucket so missing keys come back as 404.
        """
        if not self._presigned_downloads:
            try:
                self._client.download_file(bucket, key, path)
            except ClientError as e:
                if e.response["Error"]["Code"] in _NOT_FOUND_CODES:
                    raise ObjectNotFoundError(bucket, key) from e
                raise
            return

        url = self.presign_download(bucket, key)
        try:
            with urllib.request.urlopen(url, timeout=self._download_timeout) as resp:
                if resp.status != 200:
                    raise RuntimeError(f"Failed to download s3://{bucket}/{key}: HTTP {resp.status}")
                with open(path, "wb") as f:
                    shutil.copyfileobj(resp, f, _STREAM_CHUNK_SIZE)
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise ObjectNotFoundError(bucket, key) from e
            raise RuntimeError(f"Failed to download s3://{bucket}/{key}: HTTP {e.code}") from e
        except urllib.error.URLError as e:
            raise RuntimeError(f"Failed to download s3://{bucket}/{key}: {e.reason}") from e

    def delete(self, bucket: str, key: str) -> None:
        """Delete object; S3 treats deleting a missing key as success."""
        self._client.delete_object(Bucket=bucket, Key=key)
