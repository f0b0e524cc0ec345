"""
Tests for settings, logging helpers and data URLs.
"""
import logging
from datetime import date

import pytest
from pydantic import ValidationError
from starlette.requests import Request

from frameflow.core.config import Settings
from frameflow.core.logger import (
    DailyFileHandler,
    get_request_ip,
    log_event,
    reset_request_ip,
    set_request_ip,
)
from frameflow.middleware.request_log import client_ip
from frameflow.utils.media import parse_data_url, to_data_url
from frameflow.utils.text import preview, strip_code_fences


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None, GEMINI_API_KEY="")

        assert s.TRANSITION_PROGRESS == [0.33, 0.66]
        assert s.ANIMATION_TIMEOUT_SEC == 900
        assert s.has_api_key() is False

    def test_list_values_from_strings(self):
        s = Settings(_env_file=None, TRANSITION_PROGRESS="0.25, 0.75", CORS_ORIGINS='["http://a", "http://b"]')

        assert s.TRANSITION_PROGRESS == [0.25, 0.75]
        assert s.CORS_ORIGINS == ["http://a", "http://b"]

    @pytest.mark.parametrize("progress", ["0.66,0.33", "0.5", "0,0.5", "0.2,0.4,0.6"])
    def test_bad_progress_rejected(self, progress):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, TRANSITION_PROGRESS=progress)


class TestLogging:
    def test_log_event_format(self, caplog):
        logger = logging.getLogger("frameflow-test-events")
        token = set_request_ip("10.0.0.7")
        try:
            with caplog.at_level(logging.INFO, logger=logger.name):
                log_event(logger, "FRAME ok", shot="s1", frame=None, role="START")
        finally:
            reset_request_ip(token)

        assert caplog.messages == ["10.0.0.7 - FRAME ok shot=s1 role=START"]
        assert get_request_ip() == "-"

    def test_daily_file_handler(self, tmp_path):
        logger = logging.getLogger("frameflow-test-file")
        logger.propagate = False
        handler = DailyFileHandler(str(tmp_path))
        logger.addHandler(handler)
        try:
            logger.warning("hello")
        finally:
            logger.removeHandler(handler)
            handler.close()

        assert (tmp_path / f"{date.today().isoformat()}.log").read_text(encoding="utf-8") == "hello\n"

    def test_client_ip_prefers_forwarded_for(self):
        request = Request({
            "type": "http",
            "headers": [(b"x-forwarded-for", b"203.0.113.9, 10.0.0.1")],
            "client": ("10.0.0.1", 5000),
        })

        assert client_ip(request) == "203.0.113.9"


class TestMediaAndText:
    def test_data_url(self):
        url = to_data_url(b"\x00\x01", "video/mp4")

        assert url.startswith("data:video/mp4;base64,")
        assert parse_data_url(url) == (b"\x00\x01", "video/mp4")

    @pytest.mark.parametrize("url", ["", "https://example.com/a.png", "data:image/png;base64,@@@"])
    def test_bad_data_urls(self, url):
        with pytest.raises(ValueError):
            parse_data_url(url)

    def test_strip_code_fences(self):
        assert strip_code_fences("```json\n[1]\n```") == "[1]"
        assert strip_code_fences("plain") == "plain"

    def test_preview(self):
        assert preview("a\n b", limit=10) == "a b"
        assert preview("x" * 20, limit=5) == "xxxxx..."
