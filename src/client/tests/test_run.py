"""
测试进程入口：错误类型与退出码的对应关系。
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from src.client import run
from src.client.enroll.errors import (
    FramingError,
    KeyGenerationError,
    PersistenceError,
    TrustValidationError,
)
from src.client.enroll.schemas import EnrollmentResult


@pytest.fixture(autouse=True)
def _no_dotenv():
    with patch.object(run, "load_dotenv"):
        yield


def test_success_exit_code():
    result = EnrollmentResult(
        common_name="client-01",
        key_file="cert.key",
        cert_file="cert.crt",
        ca_file="ca.crt",
        subject="CN=client-01",
        issuer="CN=ezBastion Root CA",
        serial_number="1",
        not_valid_after=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )
    with patch("src.client.enroll.services.enroll_from_config", return_value=result) as mock_enroll:
        assert run.main() == 0
    mock_enroll.assert_called_once()


@pytest.mark.parametrize("error", [KeyGenerationError("entropy"), PersistenceError("read-only")])
def test_fatal_errors_exit_1(error):
    with patch("src.client.enroll.services.enroll_from_config", side_effect=error):
        assert run.main() == run.EXIT_FATAL


@pytest.mark.parametrize("error", [FramingError("short read"), TrustValidationError("untrusted")])
def test_recoverable_errors_exit_2(error):
    with patch("src.client.enroll.services.enroll_from_config", side_effect=error):
        assert run.main() == run.EXIT_FAILED
