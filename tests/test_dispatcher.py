import os
import sys
import tempfile
import unittest
from unittest import mock

import requests

# Add the parent directory to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pweb.dispatcher import Dispatcher
from pweb.models import HTTPRequest
from pweb.options import Options


def make_request(path, method="GET"):
    return HTTPRequest(method=method, path=path, protocol="HTTP/1.1",
                       headers={"Host": "localhost"}, client_address="127.0.0.1")


def upstream_response(status_code, content=b""):
    response = mock.Mock()
    response.status_code = status_code
    response.raw.headers.items.return_value = [("Content-Type", "application/json")]
    response.content = content
    response.reason = "OK" if status_code == 200 else "Not Found"
    return response


class TestDispatcher(unittest.TestCase):
    """Test cases for the proxy/local dispatch decision."""

    def setUp(self):
        # Arrange
        self.tempdir = tempfile.TemporaryDirectory()
        self.root = self.tempdir.name
        with open(os.path.join(self.root, "index.html"), "wb") as f:
            f.write(b"<p>home</p>")
        os.makedirs(os.path.join(self.root, "api"))
        with open(os.path.join(self.root, "api", "fallback.json"), "wb") as f:
            f.write(b'{"local": true}')

        self.routes = {"/api": "http://localhost:9000"}
        self.proxied = Dispatcher(self.root, self.routes)
        self.local_only = Dispatcher(self.root)

    def tearDown(self):
        self.tempdir.cleanup()

    def test_local_file_without_proxy(self):
        # Act
        response = self.local_only.dispatch(make_request("/index.html"))

        # Assert
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.header("Content-Type"), "text/html")
        self.assertEqual(response.body, b"<p>home</p>")

    def test_missing_local_file(self):
        with self.assertLogs("pweb.errors", level="ERROR"):
            response = self.local_only.dispatch(make_request("/missing.txt"))

        self.assertEqual(response.status_code, 404)
        self.assertIn(b"No such resource", response.body)

    @mock.patch("pweb.proxy.requests.request")
    def test_unmatched_path_never_reaches_upstream(self, request_mock):
        response = self.proxied.dispatch(make_request("/index.html"))

        request_mock.assert_not_called()
        self.assertEqual(response.status_code, 200)

    @mock.patch("pweb.proxy.requests.request")
    def test_upstream_response_is_relayed(self, request_mock):
        # Arrange
        request_mock.return_value = upstream_response(200, b'{"users": []}')

        # Act
        response = self.proxied.dispatch(make_request("/api/users?x=1"))

        # Assert
        self.assertEqual(request_mock.call_args.kwargs["url"], "http://localhost:9000/users?x=1")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.body, b'{"users": []}')

    @mock.patch("pweb.proxy.requests.request")
    def test_upstream_miss_falls_back_to_local_file(self, request_mock):
        request_mock.return_value = upstream_response(404)

        response = self.proxied.dispatch(make_request("/api/fallback.json"))

        request_mock.assert_called_once()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.header("Content-Type"), "application/json")
        self.assertEqual(response.body, b'{"local": true}')

    @mock.patch("pweb.proxy.requests.request")
    def test_fallback_matches_unproxied_response(self, request_mock):
        request_mock.return_value = upstream_response(404)

        for path in ("/api/fallback.json", "/api/nothing.txt", "/api", "/api/../../escape"):
            with self.subTest(path=path):
                with self.assertLogs("pweb", level="DEBUG"):
                    proxied = self.proxied.dispatch(make_request(path))
                    local = self.local_only.dispatch(make_request(path))
                self.assertEqual(proxied.to_bytes(), local.to_bytes())

    @mock.patch("pweb.proxy.requests.request")
    def test_unreachable_upstream_is_bad_gateway(self, request_mock):
        request_mock.side_effect = requests.exceptions.ConnectionError("refused")

        with self.assertLogs("pweb.errors", level="ERROR") as logs:
            response = self.proxied.dispatch(make_request("/api/fallback.json"))

        self.assertEqual(response.status_code, 502)
        self.assertIn(b"refused", response.body)
        self.assertIn("ERROR:", logs.output[0])

    def test_directory_listing(self):
        response = self.local_only.dispatch(make_request("/api/"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.header("Content-Type"), "text/html")
        self.assertIn(b'<a href="/api/fallback.json">fallback.json</a>', response.body)

    def test_strict_mode_forbids_listing(self):
        strict = Dispatcher(self.root, options=Options.STRICT)

        with self.assertLogs("pweb.errors", level="ERROR"):
            response = strict.dispatch(make_request("/api/"))

        self.assertEqual(response.status_code, 403)

    def test_traversal_is_rejected(self):
        with self.assertLogs("pweb.errors", level="ERROR"):
            response = self.local_only.dispatch(make_request("/../../etc/passwd"))

        self.assertEqual(response.status_code, 400)
        self.assertIn(b"outside the document root", response.body)

    def test_verbose_logs_local_destination(self):
        verbose = Dispatcher(self.root, options=Options.VERBOSE)

        with self.assertLogs("pweb.dispatcher", level="INFO") as logs:
            verbose.dispatch(make_request("/index.html"))

        self.assertIn(f"GET /index.html → {os.path.join(os.path.abspath(self.root), 'index.html')}",
                      logs.output[0])

    def test_quiet_suppresses_verbose_logging(self):
        quiet = Dispatcher(self.root, options=Options.VERBOSE | Options.QUIET)

        with mock.patch("pweb.dispatcher.logger") as logger:
            quiet.dispatch(make_request("/index.html"))

        logger.info.assert_not_called()


if __name__ == '__main__':
    unittest.main()
