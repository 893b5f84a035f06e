import asyncio
import io
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from s3n.s3 import S3Service


class _StubClient:
    def __init__(self, pages=None, heads=None, objects=None) -> None:
        self.pages = list(pages or [])
        self.heads = heads or {}
        self.objects = objects or {}
        self.list_calls: list[dict] = []
        self.head_calls: list[str] = []
        self.put_calls: list[dict] = []

    def list_objects_v2(self, **kwargs):
        self.list_calls.append(kwargs)
        return self.pages.pop(0)

    def head_object(self, Bucket, Key):
        self.head_calls.append(Key)
        value = self.heads.get(Key)
        if isinstance(value, Exception):
            raise value
        return {"ContentType": value}

    def get_object(self, Bucket, Key):
        return self.objects[Key]

    def put_object(self, **kwargs):
        self.put_calls.append(kwargs)
        return {}


class _Body(io.BytesIO):
    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.closed_by_reader = False

    def close(self) -> None:
        self.closed_by_reader = True
        super().close()


class TestListPage(unittest.TestCase):
    def test_first_page_request(self) -> None:
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        client = _StubClient(
            pages=[
                {
                    "CommonPrefixes": [{"Prefix": "data/a/"}],
                    "Contents": [
                        {"Key": "data/x.txt", "Size": 5, "LastModified": stamp},
                        {"Key": ""},
                    ],
                    "IsTruncated": True,
                    "NextContinuationToken": "tok",
                }
            ]
        )
        service = S3Service(client=client)
        page = asyncio.run(service.list_page("bucket", "data/", max_keys=50))
        self.assertEqual(
            client.list_calls,
            [{"Bucket": "bucket", "Delimiter": "/", "Prefix": "data/", "MaxKeys": 50}],
        )
        self.assertEqual(page.prefixes, ["data/a/"])
        self.assertEqual([obj.key for obj in page.objects], ["data/x.txt"])
        self.assertEqual(page.objects[0].size, 5)
        self.assertEqual(page.objects[0].last_modified, stamp)
        self.assertTrue(page.is_truncated)
        self.assertEqual(page.next_token, "tok")
        self.assertEqual(client.head_calls, [])

    def test_continuation_token_is_forwarded(self) -> None:
        client = _StubClient(pages=[{"IsTruncated": False, "NextContinuationToken": "x"}])
        service = S3Service(client=client)
        page = asyncio.run(
            service.list_page("bucket", "", continuation_token="tok")
        )
        self.assertEqual(client.list_calls[0]["ContinuationToken"], "tok")
        self.assertFalse(page.is_truncated)
        self.assertIsNone(page.next_token)
        self.assertEqual(page.prefixes, [])
        self.assertEqual(page.objects, [])

    def test_content_type_lookup(self) -> None:
        client = _StubClient(
            pages=[{"Contents": [{"Key": "a.json", "Size": 1}, {"Key": "b", "Size": 1}]}],
            heads={"a.json": "application/json", "b": RuntimeError("denied")},
        )
        service = S3Service(client=client)
        page = asyncio.run(service.list_page("bucket", "", with_content_type=True))
        self.assertEqual(
            [obj.content_type for obj in page.objects], ["application/json", ""]
        )
        self.assertEqual(client.head_calls, ["a.json", "b"])


class TestObjects(unittest.TestCase):
    def test_get_object_reads_and_closes_body(self) -> None:
        body = _Body(b"payload")
        client = _StubClient(
            objects={
                "k": {
                    "Body": body,
                    "Metadata": {"owner": "ops"},
                    "ContentLength": 7,
                    "ContentType": "text/plain",
                }
            }
        )
        obj = asyncio.run(S3Service(client=client).get_object("bucket", "k"))
        self.assertEqual(obj.body, b"payload")
        self.assertEqual(obj.metadata, {"owner": "ops"})
        self.assertEqual(obj.size, 7)
        self.assertEqual(obj.content_type, "text/plain")
        self.assertTrue(body.closed_by_reader)

    def test_get_object_size_falls_back_to_body_length(self) -> None:
        client = _StubClient(objects={"k": {"Body": _Body(b"abc")}})
        obj = asyncio.run(S3Service(client=client).get_object("bucket", "k"))
        self.assertEqual(obj.size, 3)
        self.assertEqual(obj.metadata, {})

    def test_put_object_keeps_content_type(self) -> None:
        client = _StubClient()
        service = S3Service(client=client)
        asyncio.run(service.put_object("bucket", "k", b"x", content_type="text/csv"))
        asyncio.run(service.put_object("bucket", "k", b"y"))
        self.assertEqual(
            client.put_calls,
            [
                {"Bucket": "bucket", "Key": "k", "Body": b"x", "ContentType": "text/csv"},
                {"Bucket": "bucket", "Key": "k", "Body": b"y"},
            ],
        )


class TestClientConstruction(unittest.TestCase):
    def test_endpoint_uses_path_style(self) -> None:
        with patch("s3n.s3.boto3.session.Session") as session_cls:
            service = S3Service(
                profile="dev", region="us-west-2", endpoint_url="http://localhost:4566"
            )
            service.connect()
            service.connect()
        session_cls.assert_called_once_with(profile_name="dev")
        session = session_cls.return_value
        session.client.assert_called_once()
        args, kwargs = session.client.call_args
        self.assertEqual(args, ("s3",))
        self.assertEqual(kwargs["region_name"], "us-west-2")
        self.assertEqual(kwargs["endpoint_url"], "http://localhost:4566")
        self.assertEqual(kwargs["config"].s3, {"addressing_style": "path"})

    def test_default_client(self) -> None:
        with patch("s3n.s3.boto3.session.Session") as session_cls:
            S3Service().connect()
        session_cls.assert_called_once_with()
        session_cls.return_value.client.assert_called_once_with("s3")


if __name__ == "__main__":
    unittest.main()
