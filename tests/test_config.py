"""Tests for configuration validation."""

import warnings

import pytest

from ftpstore import SSL, Basic, Guest, Limits, Settings, Timeout, Transfer
from ftpstore.errors import DefaultExceptionFactory, FTPFileNotFoundError, FTPFileSystemError
from ftpstore.options import FileStructure, FileType


class TestLimits:
    def test_defaults(self):
        limits = Limits()
        assert limits.connections == 5
        assert limits.wait == 0.0

    def test_rejects_empty_pool(self):
        with pytest.raises(ValueError):
            Limits(connections=0)

    def test_rejects_negative_wait(self):
        with pytest.raises(ValueError):
            Limits(wait=-1)


class TestTimeout:
    def test_rejects_non_positive_connect(self):
        with pytest.raises(ValueError):
            Timeout(connect=0)

    def test_socket_timeout_is_optional(self):
        assert Timeout().socket is None
        with pytest.raises(ValueError):
            Timeout(socket=-5)


class TestTransfer:
    def test_accepts_option_values(self):
        transfer = Transfer(file_type=FileType.binary(), structure=FileStructure.FILE)
        assert transfer.mode is None

    def test_rejects_raw_strings(self):
        with pytest.raises(ValueError):
            Transfer(file_type="I")


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.dialect == "auto-detect"
        assert isinstance(settings.exceptions, DefaultExceptionFactory)

    def test_rejects_unknown_dialect(self):
        with pytest.raises(ValueError):
            Settings(dialect="vms")

    def test_rejects_unknown_passive_command(self):
        with pytest.raises(ValueError):
            Settings(passive=("port",))

    def test_rejects_blank_default_dir(self):
        with pytest.raises(ValueError):
            Settings(default_dir="  ")


class TestAuth:
    def test_basic_credentials(self):
        assert Basic("alice", "secret").credentials == ("alice", "secret", None)
        assert Basic("alice", "secret", "acct").credentials == ("alice", "secret", "acct")

    def test_basic_rejects_blank_user(self):
        with pytest.raises(ValueError):
            Basic(" ", "secret")

    def test_basic_warns_on_empty_password(self):
        with pytest.warns(UserWarning):
            Basic("alice", "")

    def test_guest_credentials(self):
        assert Guest().credentials == ("anonymous", "anonymous@", None)

    def test_guest_warns_on_odd_email(self):
        with pytest.warns(UserWarning):
            Guest("nobody")


class TestSSL:
    def test_builds_a_context(self):
        ssl = SSL()
        assert ssl.context is not None
        assert ssl.resolve(True) is ssl.context
        assert ssl.resolve(False) is None

    def test_cert_requires_key(self, tmp_path):
        cert = tmp_path / "client.pem"
        cert.write_text("not really a certificate")
        with pytest.raises(ValueError):
            SSL(cert=str(cert))

    def test_missing_bundle(self, tmp_path):
        with pytest.raises(ValueError):
            SSL(bundle=str(tmp_path / "missing.pem"))

    def test_disabling_verification_warns(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            ssl = SSL(verify=False)
        assert ssl.context.check_hostname is False
        assert any("verification is disabled" in str(warning.message) for warning in caught)


class TestDefaultExceptionFactory:
    def test_lookup_failure_is_not_found(self):
        error = DefaultExceptionFactory().create_get_file_error("/missing", 550, "No such file")
        assert isinstance(error, FTPFileNotFoundError)
        assert isinstance(error, FileNotFoundError)
        assert error.filename == "/missing"
        assert error.reply_code == 550

    def test_other_failures_carry_the_reply(self):
        error = DefaultExceptionFactory().create_move_error("/a", "/b", 553, "Not allowed")
        assert type(error) is FTPFileSystemError
        assert error.filename == "/a"
        assert error.filename2 == "/b"
        assert error.reply_text == "Not allowed"

    def test_default_text_from_reply_code(self):
        error = FTPFileSystemError("/a", None, 550)
        assert error.strerror == "Requested action not taken; file unavailable"
