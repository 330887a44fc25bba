"""App and client fixtures for the local filesystem and S3 backends."""
import pytest
from fastapi.testclient import TestClient

from file_gateway.main import create_app
from file_gateway.settings import Settings
from tests.consts import TEST_APP_ID, TEST_BUCKET_NAME, TEST_MASTER_KEY


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        deployment_mode="local-dev",
        storage_dir=str(tmp_path / "storage"),
        app_id=TEST_APP_ID,
        master_key=TEST_MASTER_KEY,
        public_server_url="http://testserver",
    )


@pytest.fixture
def client(settings) -> TestClient:
    with TestClient(create_app(settings=settings)) as client:
        yield client


@pytest.fixture
def s3_settings(mocked_aws) -> Settings:
    return Settings(
        deployment_mode="aws-mock",
        s3_bucket_name=TEST_BUCKET_NAME,
        app_id=TEST_APP_ID,
        master_key=TEST_MASTER_KEY,
        public_server_url="http://testserver",
    )


@pytest.fixture
def s3_app_client(s3_settings) -> TestClient:
    with TestClient(create_app(settings=s3_settings)) as client:
        yield client
