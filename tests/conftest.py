"""Shared fixtures: settings, sample invoices and an in-memory record store."""
import pytest

from factories import ORG_NAME, ORG_TAX_ID, SUPER_ADMIN_ID, InMemoryRecordStore, make_invoice
from reimburse_assistant.config import Settings
from reimburse_assistant.core.models import UserProfile


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        gemini_api_key="AIzaSyTestingKey_abcdefghijklmnopqrstu",
        supabase_url="https://example.supabase.co",
        supabase_anon_key="anon-key",
        org_name=ORG_NAME,
        org_tax_id=ORG_TAX_ID,
        super_admin_id=SUPER_ADMIN_ID,
        profile_path=tmp_path / "profile.json",
        export_directory=tmp_path / "exports",
        logs_directory=tmp_path / "logs",
    )


@pytest.fixture
def owner():
    return UserProfile(name="李雷", student_id="6230000001", supervisor="韩梅梅", phone="13800000000")


@pytest.fixture
def invoice():
    return make_invoice()


@pytest.fixture
def store():
    return InMemoryRecordStore()
