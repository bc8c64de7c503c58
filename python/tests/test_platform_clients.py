"""
Tests for the platform executors with mocked HTTP calls.
"""

import os
import unittest
from unittest.mock import patch

import requests

from api import DEFAULT_EXECUTORS, build_default_dispatcher
from api.bluesky_client import BlueskyExecutor
from api.discord_client import DISCORD_BRAND_COLOR, DiscordExecutor, build_webhook_payload
from api.facebook_client import FacebookExecutor
from api.http_utils import describe_request_error
from api.linkedin_client import LinkedInExecutor
from api.reddit_client import RedditExecutor, build_title
from api.telegram_client import TelegramExecutor, media_method
from api.x_client import XExecutor
from scheduler.models import PostContent
from .test_utils import BaseTestCase, MockFactory, TempDirTestCase


class TestDefaultDispatcher(BaseTestCase):
    def test_registers_every_platform(self):
        dispatcher = build_default_dispatcher(timeout_seconds=5)
        self.assertEqual(
            dispatcher.platforms(),
            sorted(executor.platform for executor in DEFAULT_EXECUTORS),
        )
        self.assertEqual(
            dispatcher.platforms(),
            ["bluesky", "discord", "facebook", "linkedin", "reddit", "telegram", "x"],
        )

    def test_missing_credentials_fail_without_network(self):
        expected = {
            "telegram": "Telegram credentials not configured",
            "discord": "Discord webhook not configured",
            "bluesky": "BlueSky credentials not configured",
            "reddit": "Reddit credentials not configured",
            "facebook": "Facebook token not configured",
            "linkedin": "LinkedIn token not configured",
            "x": "X/Twitter credentials not configured",
        }
        dispatcher = build_default_dispatcher(timeout_seconds=5)

        with patch("requests.post") as mock_post, patch("requests.get") as mock_get:
            for platform, message in expected.items():
                result = dispatcher.execute(platform, PostContent("hi"), None)
                self.assertFalse(result.success)
                self.assertEqual(result.error_message, message)

        mock_post.assert_not_called()
        mock_get.assert_not_called()


class TestDescribeRequestError(BaseTestCase):
    def test_prefers_api_message(self):
        response = MockFactory.create_http_response(
            {"description": "Bad Request: chat not found"}, status_code=400
        )
        error = requests.exceptions.HTTPError("400 Error", response=response)
        self.assertEqual(describe_request_error(error), "Bad Request: chat not found")

    def test_nested_error_message(self):
        response = MockFactory.create_http_response(
            {"error": {"message": "Invalid OAuth access token"}}, status_code=400
        )
        error = requests.exceptions.HTTPError("400 Error", response=response)
        self.assertEqual(describe_request_error(error), "Invalid OAuth access token")

    def test_falls_back_to_status(self):
        response = MockFactory.create_http_response(status_code=502)
        error = requests.exceptions.HTTPError("502 Error", response=response)
        self.assertEqual(describe_request_error(error), "HTTP 502: 502 Error")

    def test_connection_error(self):
        error = requests.exceptions.ConnectionError("connection refused")
        self.assertEqual(describe_request_error(error), "connection refused")


class TestTelegramExecutor(TempDirTestCase):
    def setUp(self):
        super().setUp()
        self.executor = TelegramExecutor()
        self.credentials = {"bot_token": "123:abc", "chat_id": "-100"}

    def test_media_method(self):
        self.assertEqual(media_method("clip.MP4"), ("sendVideo", "video"))
        self.assertEqual(media_method("fun.gif"), ("sendAnimation", "animation"))
        self.assertEqual(media_method("photo.jpg"), ("sendPhoto", "photo"))

    @patch("api.telegram_client.requests.post")
    def test_text_message(self, mock_post):
        mock_post.return_value = MockFactory.create_http_response(
            {"ok": True, "result": {"message_id": 55}}
        )

        result = self.executor.execute(PostContent("hello"), self.credentials)

        self.assertTrue(result.success)
        self.assertEqual(result.platform_post_id, "55")
        url = mock_post.call_args[0][0]
        self.assertEqual(url, "https://api.telegram.org/bot123:abc/sendMessage")
        self.assertEqual(mock_post.call_args[1]["json"]["chat_id"], "-100")

    @patch("api.telegram_client.requests.post")
    def test_media_caption_on_first_item_only(self, mock_post):
        paths = []
        for name in ("a.png", "b.mp4"):
            path = os.path.join(self.temp_dir, name)
            with open(path, "wb") as f:
                f.write(b"\x00")
            paths.append(path)
        mock_post.side_effect = [
            MockFactory.create_http_response({"ok": True, "result": {"message_id": 1}}),
            MockFactory.create_http_response({"ok": True, "result": {"message_id": 2}}),
        ]

        result = self.executor.execute(PostContent("caption", paths), self.credentials)

        self.assertEqual(result.platform_post_id, "1")
        first, second = mock_post.call_args_list
        self.assertTrue(first[0][0].endswith("/sendPhoto"))
        self.assertEqual(first[1]["data"]["caption"], "caption")
        self.assertTrue(second[0][0].endswith("/sendVideo"))
        self.assertNotIn("caption", second[1]["data"])

    @patch("api.telegram_client.requests.post")
    def test_api_error(self, mock_post):
        mock_post.return_value = MockFactory.create_http_error_response(
            400, {"ok": False, "description": "Bad Request: chat not found"}
        )

        result = self.executor.execute(PostContent("hello"), self.credentials)

        self.assertFalse(result.success)
        self.assertEqual(
            result.error_message, "Failed to post to Telegram: Bad Request: chat not found"
        )

    @patch("api.telegram_client.requests.post")
    def test_not_ok_body(self, mock_post):
        mock_post.return_value = MockFactory.create_http_response(
            {"ok": False, "description": "Forbidden"}
        )

        result = self.executor.execute(PostContent("hello"), self.credentials)

        self.assertFalse(result.success)
        self.assertIn("Forbidden", result.error_message)


class TestDiscordExecutor(BaseTestCase):
    def test_payload_shapes(self):
        self.assertEqual(
            build_webhook_payload(PostContent("hi")),
            {"embeds": [{"description": "hi", "color": DISCORD_BRAND_COLOR}]},
        )
        image = build_webhook_payload(PostContent("hi", ["https://img.test/a.png"]))
        self.assertEqual(image["embeds"][0]["image"], {"url": "https://img.test/a.png"})
        self.assertEqual(
            build_webhook_payload(PostContent("hi", ["a.png", "b.png"])), {"content": "hi"}
        )

    @patch("api.discord_client.requests.post")
    def test_success_returns_message_id(self, mock_post):
        mock_post.return_value = MockFactory.create_http_response({"id": "9001"})

        result = DiscordExecutor().execute(
            PostContent("hi"), {"webhook_url": "https://discord.test/hook"}
        )

        self.assertTrue(result.success)
        self.assertEqual(result.platform_post_id, "9001")
        self.assertEqual(mock_post.call_args[1]["params"], {"wait": "true"})

    @patch("api.discord_client.requests.post")
    def test_network_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("unreachable")

        result = DiscordExecutor().execute(
            PostContent("hi"), {"webhook_url": "https://discord.test/hook"}
        )

        self.assertEqual(result.error_message, "Failed to post to Discord: unreachable")


class TestBlueskyExecutor(BaseTestCase):
    @patch("api.bluesky_client.requests.post")
    def test_session_then_record(self, mock_post):
        mock_post.side_effect = [
            MockFactory.create_http_response({"accessJwt": "jwt", "did": "did:plc:me"}),
            MockFactory.create_http_response({"uri": "at://did:plc:me/post/1"}),
        ]

        result = BlueskyExecutor().execute(
            PostContent("hi", ["https://img.test/a.png"]),
            {"identifier": "me.bsky.social", "password": "pw"},
        )

        self.assertEqual(result.platform_post_id, "at://did:plc:me/post/1")
        session_call, record_call = mock_post.call_args_list
        self.assertTrue(session_call[0][0].endswith("com.atproto.server.createSession"))
        record = record_call[1]["json"]
        self.assertEqual(record["repo"], "did:plc:me")
        self.assertEqual(record["record"]["text"], "hi\n\nhttps://img.test/a.png")
        self.assertEqual(record_call[1]["headers"]["Authorization"], "Bearer jwt")

    @patch("api.bluesky_client.requests.post")
    def test_login_failure(self, mock_post):
        mock_post.return_value = MockFactory.create_http_error_response(
            401, {"message": "Invalid identifier or password"}
        )

        result = BlueskyExecutor().execute(
            PostContent("hi"), {"identifier": "me", "password": "wrong"}
        )

        self.assertEqual(
            result.error_message, "Failed to post to BlueSky: Invalid identifier or password"
        )
        self.assertEqual(mock_post.call_count, 1)


class TestRedditExecutor(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.credentials = {
            "access_token": "old",
            "refresh_token": "refresh",
            "client_id": "cid",
            "client_secret": "secret",
            "subreddit": "r/test",
        }

    def test_build_title(self):
        self.assertEqual(build_title("\n  First line \nsecond"), "First line")
        self.assertEqual(build_title(""), "Untitled")
        self.assertEqual(len(build_title("x" * 500)), 300)

    def test_missing_subreddit(self):
        result = RedditExecutor().execute(PostContent("hi"), {"access_token": "t"})
        self.assertEqual(result.error_message, "Reddit subreddit not configured")

    @patch("api.reddit_client.requests.post")
    def test_submit_success(self, mock_post):
        mock_post.return_value = MockFactory.create_http_response(
            {"json": {"errors": [], "data": {"name": "t3_abc"}}}
        )

        result = RedditExecutor().execute(PostContent("Title\nbody"), self.credentials)

        self.assertEqual(result.platform_post_id, "t3_abc")
        payload = mock_post.call_args[1]["data"]
        self.assertEqual(payload["sr"], "test")
        self.assertEqual(payload["title"], "Title")
        self.assertEqual(payload["kind"], "self")

    @patch("api.reddit_client.requests.post")
    def test_api_errors_are_reported(self, mock_post):
        mock_post.return_value = MockFactory.create_http_response(
            {"json": {"errors": [["SUBREDDIT_NOEXIST", "that subreddit doesn't exist", "sr"]]}}
        )

        result = RedditExecutor().execute(PostContent("hi"), self.credentials)

        self.assertEqual(
            result.error_message, "Reddit API error: that subreddit doesn't exist"
        )

    @patch("api.reddit_client.requests.post")
    def test_expired_token_is_refreshed_once(self, mock_post):
        mock_post.side_effect = [
            MockFactory.create_http_response({}, status_code=401),
            MockFactory.create_http_response({"access_token": "new"}),
            MockFactory.create_http_response(
                {"json": {"errors": [], "data": {"name": "t3_new"}}}
            ),
        ]

        result = RedditExecutor().execute(PostContent("hi"), self.credentials)

        self.assertEqual(result.platform_post_id, "t3_new")
        self.assertEqual(mock_post.call_count, 3)
        retry_headers = mock_post.call_args_list[2][1]["headers"]
        self.assertEqual(retry_headers["Authorization"], "bearer new")


class TestFacebookExecutor(BaseTestCase):
    @patch("api.facebook_client.requests.post")
    def test_page_post_uses_page_token(self, mock_post):
        mock_post.return_value = MockFactory.create_http_response({"id": "123_456"})

        result = FacebookExecutor().execute(
            PostContent("hi", ["https://example.com/article"]),
            {"token": "user", "page_token": "page", "page_id": "123"},
        )

        self.assertEqual(result.platform_post_id, "123_456")
        self.assertEqual(
            mock_post.call_args[0][0], "https://graph.facebook.com/v18.0/123/feed"
        )
        data = mock_post.call_args[1]["data"]
        self.assertEqual(data["access_token"], "page")
        self.assertEqual(data["link"], "https://example.com/article")

    @patch("api.facebook_client.requests.post")
    def test_graph_error(self, mock_post):
        mock_post.return_value = MockFactory.create_http_error_response(
            400, {"error": {"message": "Invalid OAuth access token"}}
        )

        result = FacebookExecutor().execute(PostContent("hi"), {"token": "bad"})

        self.assertEqual(
            result.error_message, "Failed to post to Facebook: Invalid OAuth access token"
        )


class TestLinkedInExecutor(BaseTestCase):
    @patch("api.linkedin_client.requests.post")
    @patch("api.linkedin_client.requests.get")
    def test_profile_then_share(self, mock_get, mock_post):
        mock_get.return_value = MockFactory.create_http_response({"id": "abc"})
        mock_post.return_value = MockFactory.create_http_response(
            {}, status_code=201, headers={"x-restli-id": "urn:li:share:1"}
        )

        result = LinkedInExecutor().execute(PostContent("hi"), {"token": "li"})

        self.assertEqual(result.platform_post_id, "urn:li:share:1")
        self.assertEqual(mock_post.call_args[1]["json"]["author"], "urn:li:person:abc")


class TestXExecutor(BaseTestCase):
    @patch("api.x_client.requests.post")
    def test_success(self, mock_post):
        mock_post.return_value = MockFactory.create_http_response(
            {"data": {"id": "1700", "text": "hi"}}, status_code=201
        )

        result = XExecutor().execute(PostContent("hi"), {"access_token": "tok"})

        self.assertEqual(result.platform_post_id, "1700")
        self.assertEqual(mock_post.call_args[1]["json"], {"text": "hi"})
        self.assertEqual(
            mock_post.call_args[1]["headers"]["Authorization"], "Bearer tok"
        )

    @patch("api.x_client.requests.post")
    def test_unexpected_body(self, mock_post):
        mock_post.return_value = MockFactory.create_http_response({"errors": []})

        result = XExecutor().execute(PostContent("hi"), {"access_token": "tok"})

        self.assertFalse(result.success)
        self.assertTrue(result.error_message.startswith("Unexpected X response"))


if __name__ == "__main__":
    unittest.main()
