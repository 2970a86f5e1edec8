import base64
from urllib.parse import parse_qs, urlparse

import pyotp
import pytest

from app.core import totp

SECRET = "JBSWY3DPEHPK3PXP"
# aligned on a step boundary so +/- 30 seconds stays on whole steps
T = 1_700_000_010 - (1_700_000_010 % 30) + 15


def code_at(timestamp: float) -> str:
    return pyotp.TOTP(SECRET).at(timestamp)


class TestGenerateSecret:
    """Test cases for generate_secret()"""

    def test_secret_is_base32(self):
        enrollment = totp.generate_secret("alice")

        assert len(enrollment.secret) >= 16
        base64.b32decode(enrollment.secret)

    def test_provisioning_uri(self):
        enrollment = totp.generate_secret("alice", issuer="SecureAuth Platform")
        parsed = urlparse(enrollment.provisioning_uri)
        query = parse_qs(parsed.query)

        assert parsed.scheme == "otpauth"
        assert parsed.netloc == "totp"
        assert "alice" in parsed.path
        assert query["secret"] == [enrollment.secret]
        assert query["issuer"] == ["SecureAuth Platform"]

    def test_qr_code_is_svg_data_url(self):
        enrollment = totp.generate_secret("alice")
        prefix = "data:image/svg+xml;base64,"

        assert enrollment.qr_code_data_url.startswith(prefix)
        svg = base64.b64decode(enrollment.qr_code_data_url[len(prefix):]).decode("utf-8")
        assert "<svg" in svg

    def test_secrets_are_random(self):
        assert totp.generate_secret("a").secret != totp.generate_secret("a").secret


class TestVerify:
    """Test cases for verify() and match_step()"""

    def test_current_code(self):
        assert totp.verify(SECRET, code_at(T), for_time=T)

    @pytest.mark.parametrize("drift", [-30, 30])
    def test_adjacent_step_accepted(self, drift):
        """Codes one step old or one step ahead are accepted"""
        assert totp.verify(SECRET, code_at(T + drift), for_time=T)

    @pytest.mark.parametrize("drift", [-90, 90, -60, 60])
    def test_outside_window_rejected(self, drift):
        code = code_at(T + drift)
        # a collision with an in-window code would make this flaky
        in_window = {code_at(T - 30), code_at(T), code_at(T + 30)}
        if code in in_window:
            pytest.skip("code collision")
        assert not totp.verify(SECRET, code, for_time=T)

    def test_zero_window(self):
        assert totp.verify(SECRET, code_at(T), window=0, for_time=T)

    @pytest.mark.parametrize("code", ["", "12345", "1234567", "abcdef", "12 34a6", None])
    def test_non_code_input(self, code):
        assert totp.match_step(SECRET, code, for_time=T) is None

    def test_spaces_are_ignored(self):
        code = code_at(T)
        assert totp.verify(SECRET, f"{code[:3]} {code[3:]}", for_time=T)

    def test_invalid_secret(self):
        assert totp.match_step("not base32 !!", "123456", for_time=T) is None

    def test_match_step_returns_step_of_code(self):
        current = totp.time_step(T)

        assert totp.match_step(SECRET, code_at(T), for_time=T) == current
        assert totp.match_step(SECRET, code_at(T - 30), for_time=T) == current - 1
        assert totp.match_step(SECRET, code_at(T + 30), for_time=T) == current + 1
