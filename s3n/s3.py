from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int
    last_modified: Optional[datetime]
    content_type: str = ""


@dataclass(frozen=True)
class ListingPage:
    prefixes: list[str] = field(default_factory=list)
    objects: list[ObjectInfo] = field(default_factory=list)
    is_truncated: bool = False
    next_token: Optional[str] = None


@dataclass(frozen=True)
class ObjectBody:
    key: str
    body: bytes
    metadata: dict[str, str] = field(default_factory=dict)
    size: int = 0
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None


class S3Service:
    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Optional[object] = None,
    ) -> None:
        self._profile = profile
        self._region = region
        self._endpoint_url = endpoint_url
        self._client_instance = client

    def connect(self) -> None:
        self._client()

    def _client(self):
        if self._client_instance is not None:
            return self._client_instance
        if self._profile is None:
            session = boto3.session.Session()
        else:
            session = boto3.session.Session(profile_name=self._profile)
        kwargs: dict[str, object] = {}
        if self._region:
            kwargs["region_name"] = self._region
        if self._endpoint_url:
            # LocalStack and most S3-compatible stores want path-style URLs.
            kwargs["endpoint_url"] = self._endpoint_url
            kwargs["config"] = Config(s3={"addressing_style": "path"})
        client = session.client("s3", **kwargs)
        logger.debug(
            "s3 client ready (profile=%s, region=%s, endpoint=%s)",
            self._profile or "default",
            self._region or "default",
            self._endpoint_url or "default",
        )
        self._client_instance = client
        return client

    async def list_page(
        self,
        bucket: str,
        prefix: str,
        delimiter: str = "/",
        max_keys: int = 100,
        continuation_token: Optional[str] = None,
        with_content_type: bool = False,
    ) -> ListingPage:
        return await asyncio.to_thread(
            self._list_page,
            bucket,
            prefix,
            delimiter,
            max_keys,
            continuation_token,
            with_content_type,
        )

    def _list_page(
        self,
        bucket: str,
        prefix: str,
        delimiter: str,
        max_keys: int,
        continuation_token: Optional[str],
        with_content_type: bool,
    ) -> ListingPage:
        client = self._client()
        kwargs = {
            "Bucket": bucket,
            "Delimiter": delimiter,
            "Prefix": prefix,
            "MaxKeys": max_keys,
        }
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        response = client.list_objects_v2(**kwargs)
        prefixes: list[str] = []
        for entry in response.get("CommonPrefixes", []):
            value = entry.get("Prefix")
            if value is not None:
                prefixes.append(value)
        objects: list[ObjectInfo] = []
        for entry in response.get("Contents", []):
            key = entry.get("Key")
            if not key:
                continue
            content_type = ""
            if with_content_type:
                content_type = self._head_content_type(bucket, key)
            objects.append(
                ObjectInfo(
                    key=key,
                    size=int(entry.get("Size", 0)),
                    last_modified=entry.get("LastModified"),
                    content_type=content_type,
                )
            )
        truncated = bool(response.get("IsTruncated"))
        next_token = response.get("NextContinuationToken") if truncated else None
        return ListingPage(
            prefixes=prefixes,
            objects=objects,
            is_truncated=truncated,
            next_token=next_token,
        )

    def _head_content_type(self, bucket: str, key: str) -> str:
        client = self._client()
        try:
            response = client.head_object(Bucket=bucket, Key=key)
        except Exception as exc:
            logger.debug("head_object failed for %s: %s", key, exc)
            return ""
        value = response.get("ContentType") if isinstance(response, dict) else None
        return value or ""

    async def get_object(self, bucket: str, key: str) -> ObjectBody:
        return await asyncio.to_thread(self._get_object, bucket, key)

    def _get_object(self, bucket: str, key: str) -> ObjectBody:
        client = self._client()
        response = client.get_object(Bucket=bucket, Key=key)
        body = response.get("Body")
        data = b""
        if body is not None:
            try:
                data = body.read()
            finally:
                try:
                    body.close()
                except Exception:
                    pass
        size = response.get("ContentLength")
        if not isinstance(size, int):
            size = len(data)
        return ObjectBody(
            key=key,
            body=data,
            metadata=dict(response.get("Metadata") or {}),
            size=size,
            last_modified=response.get("LastModified"),
            content_type=response.get("ContentType"),
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> None:
        await asyncio.to_thread(self._put_object, bucket, key, data, content_type)

    def _put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: Optional[str],
    ) -> None:
        client = self._client()
        kwargs = {"Bucket": bucket, "Key": key, "Body": data}
        if content_type:
            kwargs["ContentType"] = content_type
        client.put_object(**kwargs)
