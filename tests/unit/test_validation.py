# ABOUTME: Unit tests for resource name and namespace validation
# ABOUTME: Tests DNS-1123 patterns, length limits, and path-altering input

import pytest

from clusterpilot_mcp.errors import ClusterPilotError, InvalidNameError
from clusterpilot_mcp.utils.validation import (
    MAX_NAMESPACE_NAME,
    MAX_RESOURCE_NAME,
    validate_namespace,
    validate_resource_name,
)


@pytest.mark.unit
class TestValidateResourceName:
    """Tests for validate_resource_name."""

    @pytest.mark.parametrize("name", ["web", "web-1", "a", "kube-root-ca.crt", "9lives"])
    def test_valid(self, name):
        """Test that DNS-1123 subdomain names pass unchanged."""
        assert validate_resource_name(name) == name

    @pytest.mark.parametrize(
        "name",
        [None, "", "   ", "Web", "web_1", "-web", "web-", "web/../db", "web?dryRun=All", "web;rm", "web..db"],
    )
    def test_invalid(self, name):
        """Test that empty, uppercase, and path-altering names are rejected."""
        with pytest.raises(InvalidNameError):
            validate_resource_name(name)

    def test_length_limit(self):
        """Test the 253 character limit."""
        assert validate_resource_name("a" * MAX_RESOURCE_NAME)
        with pytest.raises(InvalidNameError):
            validate_resource_name("a" * (MAX_RESOURCE_NAME + 1))

    def test_message_names_field(self):
        """Test that the error says which field was wrong."""
        with pytest.raises(InvalidNameError) as exc_info:
            validate_resource_name("", field="deployment name")

        assert str(exc_info.value) == "Invalid deployment name '': must not be empty"
        assert isinstance(exc_info.value, ClusterPilotError)


@pytest.mark.unit
class TestValidateNamespace:
    """Tests for validate_namespace."""

    @pytest.mark.parametrize("namespace", ["default", "kube-system", "team-42"])
    def test_valid(self, namespace):
        """Test that DNS-1123 labels pass unchanged."""
        assert validate_namespace(namespace) == namespace

    @pytest.mark.parametrize("namespace", [None, "", "a/pods/x", "prod.eu", "Prod", "prod?watch=1"])
    def test_invalid(self, namespace):
        """Test that dots, slashes, and query strings are rejected."""
        with pytest.raises(InvalidNameError) as exc_info:
            validate_namespace(namespace)

        assert exc_info.value.field == "namespace"

    def test_length_limit(self):
        """Test the 63 character limit."""
        assert validate_namespace("n" * MAX_NAMESPACE_NAME)
        with pytest.raises(InvalidNameError):
            validate_namespace("n" * (MAX_NAMESPACE_NAME + 1))
