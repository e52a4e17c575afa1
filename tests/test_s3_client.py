"""Tests for S3 client factory module."""

from unittest.mock import MagicMock, patch

import pytest

from s3verify.models import ServerConfig
from s3verify.s3_client import build_s3_client


class TestBuildS3Client:
    """Tests for build_s3_client function."""

    @pytest.fixture
    def config(self) -> ServerConfig:
        """Create a sample server config for testing."""
        return ServerConfig(
            endpoint_url="https://s3.us-west-000.backblazeb2.com",
            access_key="test-access-key",
            secret_key="test-secret-key",
            region="us-west-000",
            addressing_style="virtual",
            workers=32,
            verify_ssl=False,
        )

    @patch("s3verify.s3_client.boto3.client")
    def test_correct_endpoint_and_credentials(self, mock_boto_client: MagicMock, config: ServerConfig):
        """Verify endpoint, credentials, and region are passed to boto3."""
        build_s3_client(config)

        mock_boto_client.assert_called_once()
        call_kwargs = mock_boto_client.call_args.kwargs

        assert mock_boto_client.call_args.args == ("s3",)
        assert call_kwargs["endpoint_url"] == "https://s3.us-west-000.backblazeb2.com"
        assert call_kwargs["aws_access_key_id"] == "test-access-key"
        assert call_kwargs["aws_secret_access_key"] == "test-secret-key"
        assert call_kwargs["region_name"] == "us-west-000"
        assert call_kwargs["verify"] is False

    @patch("s3verify.s3_client.boto3.client")
    def test_client_config(self, mock_boto_client: MagicMock, config: ServerConfig):
        """Signature version, addressing style, pool size and retries."""
        build_s3_client(config)

        boto_config = mock_boto_client.call_args.kwargs["config"]

        assert boto_config.signature_version == "s3v4"
        assert boto_config.s3["addressing_style"] == "virtual"
        assert boto_config.max_pool_connections == 32
        assert boto_config.retries["max_attempts"] == 1

    @patch("s3verify.s3_client.boto3.client")
    def test_pool_has_minimum_size(self, mock_boto_client: MagicMock):
        build_s3_client(ServerConfig(endpoint_url="http://localhost:9000", access_key="a", secret_key="s", workers=2))

        assert mock_boto_client.call_args.kwargs["config"].max_pool_connections == 10

    @patch("s3verify.s3_client.boto3.client")
    def test_returns_s3_client(self, mock_boto_client: MagicMock, config: ServerConfig):
        mock_client = MagicMock()
        mock_boto_client.return_value = mock_client

        assert build_s3_client(config) is mock_client
