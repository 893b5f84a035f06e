import io
import unittest
from contextlib import redirect_stderr
from unittest.mock import patch

from s3n.app import main


class TestCli(unittest.TestCase):
    def test_missing_bucket_exits_with_usage(self) -> None:
        stderr = io.StringIO()
        with patch("s3n.app.BucketBrowser") as browser, redirect_stderr(stderr):
            code = main([])
        self.assertEqual(code, 1)
        browser.assert_not_called()
        self.assertIn("usage:", stderr.getvalue())
        self.assertIn("Please provide a bucket name", stderr.getvalue())

    def test_runs_browser_for_bucket(self) -> None:
        with patch("s3n.app.S3Service") as service_cls, patch(
            "s3n.app.BucketBrowser"
        ) as browser, patch("s3n.app.configure_logging"):
            code = main(
                [
                    "my-bucket",
                    "--profile",
                    "dev",
                    "--region",
                    "us-east-2",
                    "--endpoint-url",
                    "http://localhost:4566",
                    "--page-size",
                    "20",
                ]
            )
        self.assertEqual(code, 0)
        service_cls.assert_called_once_with(
            profile="dev", region="us-east-2", endpoint_url="http://localhost:4566"
        )
        service_cls.return_value.connect.assert_called_once_with()
        settings = browser.call_args.args[0]
        self.assertEqual(settings.bucket, "my-bucket")
        self.assertEqual(settings.page_size, 20)
        self.assertIs(browser.call_args.kwargs["service"], service_cls.return_value)
        browser.return_value.run.assert_called_once_with()

    def test_client_failure_exits_before_ui(self) -> None:
        stderr = io.StringIO()
        with patch("s3n.app.S3Service") as service_cls, patch(
            "s3n.app.BucketBrowser"
        ) as browser, patch("s3n.app.configure_logging"), redirect_stderr(stderr):
            service_cls.return_value.connect.side_effect = RuntimeError(
                "The config profile (nope) could not be found"
            )
            code = main(["my-bucket", "--profile", "nope"])
        self.assertEqual(code, 1)
        browser.assert_not_called()
        self.assertIn("could not be found", stderr.getvalue())

    def test_invalid_page_size_exits(self) -> None:
        stderr = io.StringIO()
        with patch("s3n.app.BucketBrowser") as browser, patch(
            "s3n.app.configure_logging"
        ), redirect_stderr(stderr):
            code = main(["my-bucket", "--page-size", "5000"])
        self.assertEqual(code, 1)
        browser.assert_not_called()
        self.assertIn("page size", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
