"""Tests for settings, logging, tokens and the error hierarchy."""

import logging
import pytest
from datetime import timedelta
from types import SimpleNamespace
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from auditflow.api import main
from auditflow.api.middleware.request_logging import get_client_ip, log_level_for
from auditflow.core.config import Settings
from auditflow.core.errors import (
    AppError,
    ConflictError,
    DuplicateApprovalError,
    NotFoundError,
    UnmetRequirementsError,
)
from auditflow.core.logging import configure_logging, setup_logger
from auditflow.core.security import (
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.approval_default_priority == "medium"
        assert settings.approval_sla_warning_hours == 24
        assert settings.algorithm == "HS256"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("APPROVAL_SLA_WARNING_HOURS", "48")
        monkeypatch.setenv("DATABASE_URL", "sqlite://")
        settings = Settings(_env_file=None)
        assert settings.approval_sla_warning_hours == 48
        assert settings.database_url == "sqlite://"

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="http://a.test, http://b.test,")
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_unknown_default_priority_rejected(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, approval_default_priority="urgent")

    def test_log_level_normalised(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"


class TestLogging:

    def test_setup_logger_sets_level(self):
        logger = setup_logger("auditflow-test-level", level="debug")
        assert logger.level == logging.DEBUG

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            setup_logger("auditflow-test-invalid", level="LOUD")

    def test_no_duplicate_handlers(self):
        first = setup_logger("auditflow-test-dup")
        count = len(first.handlers)
        second = setup_logger("auditflow-test-dup")
        assert second is first
        assert len(second.handlers) == count

    def test_file_logging(self, tmp_path):
        logger = setup_logger(
            "auditflow-test-file",
            log_dir=str(tmp_path),
            file_logging=True,
            console_logging=False,
        )
        logger.info("written to disk")
        for handler in logger.handlers:
            handler.flush()
        assert "written to disk" in (tmp_path / "auditflow-test-file.log").read_text()

    def test_configure_logging_from_settings(self):
        settings = Settings(_env_file=None, log_level="warning")
        logger = configure_logging(settings)
        assert logger.name == "auditflow"
        assert logger.level == logging.WARNING
        assert logging.getLogger("auditflow.core.approval.service").getEffectiveLevel() == logging.WARNING


class TestTokens:

    def test_round_trip(self):
        user_id = uuid4()
        assert decode_token(create_access_token(user_id)) == user_id

    def test_expired_token(self):
        token = create_access_token(uuid4(), expires_delta=timedelta(seconds=-5))
        assert decode_token(token) is None

    def test_garbage_token(self):
        assert decode_token("not-a-token") is None

    def test_password_hash(self):
        hashed = get_password_hash("s3cret")
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)


class TestErrors:

    def test_not_found_payload(self):
        err = NotFoundError("Approval", uuid4())
        assert err.status_code == 404
        assert err.to_dict() == {"error": "not_found", "detail": "Approval not found"}

    def test_duplicate_approval(self):
        entity_id = uuid4()
        err = DuplicateApprovalError("Report", entity_id)
        assert isinstance(err, ConflictError)
        assert err.status_code == 409
        assert err.to_dict()["entity_id"] == str(entity_id)

    def test_unmet_requirements(self):
        err = UnmetRequirementsError(["Sign-off"])
        assert err.status_code == 400
        assert err.to_dict()["unmet_requirements"] == ["Sign-off"]
        assert isinstance(err, AppError)


class TestRequestLoggingHelpers:

    def _request(self, headers=None, host="10.0.0.9"):
        return SimpleNamespace(headers=headers or {}, client=SimpleNamespace(host=host) if host else None)

    def test_forwarded_for_wins(self):
        request = self._request({"x-forwarded-for": "1.2.3.4, 5.6.7.8", "x-real-ip": "9.9.9.9"})
        assert get_client_ip(request) == "1.2.3.4"

    def test_real_ip(self):
        assert get_client_ip(self._request({"x-real-ip": "9.9.9.9"})) == "9.9.9.9"

    def test_client_host_and_unknown(self):
        assert get_client_ip(self._request()) == "10.0.0.9"
        assert get_client_ip(self._request(host=None)) == "unknown"

    def test_levels(self):
        assert log_level_for(200) == logging.INFO
        assert log_level_for(404) == logging.WARNING
        assert log_level_for(503) == logging.ERROR


class TestAppFactory:

    def test_import_builds_nothing(self):
        assert not hasattr(main, "app")

    def test_create_app_uses_given_settings(self):
        settings = Settings(_env_file=None, database_url="sqlite://", app_name="AuditFlow Test")
        app = main.create_app(settings)
        assert app.title == "AuditFlow Test"
        assert app.state.settings is settings
        assert app.state.engine.dialect.name == "sqlite"
