# ABOUTME: Validation of resource names and namespaces before they reach a URL path
# ABOUTME: DNS-1123 patterns, length limits, and rejection of empty or path-altering input

"""
Name validation for Kubernetes objects.

Names and namespaces are interpolated into REST paths, so an empty name
turns an object URL into a collection URL (DELETE on a collection removes
every object in it), and a "/" or "?" rewrites the request target. The
facade and the rollout coordinator run these checks before building a path.

    validate_resource_name("web-1")        -> "web-1"
    validate_resource_name("")             -> InvalidNameError
    validate_namespace("a/pods/x")         -> InvalidNameError
"""

from __future__ import annotations

import re

from clusterpilot_mcp.errors import InvalidNameError

# DNS-1123 subdomain: dot-separated labels
RESOURCE_NAME = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
# DNS-1123 label
DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

MAX_RESOURCE_NAME = 253
MAX_NAMESPACE_NAME = 63


def validate_resource_name(name: str | None, field: str = "name") -> str:
    """
    Check a resource name and return it unchanged.

    Raises:
        InvalidNameError: Empty, too long, or not a DNS-1123 subdomain
    """
    if not name or not name.strip():
        raise InvalidNameError(field, name or "", "must not be empty")
    if len(name) > MAX_RESOURCE_NAME:
        raise InvalidNameError(field, name, f"must be at most {MAX_RESOURCE_NAME} characters")
    if not RESOURCE_NAME.match(name):
        raise InvalidNameError(
            field, name, "must consist of lowercase alphanumerics, '-' or '.', and start and end alphanumeric"
        )
    return name


def validate_namespace(namespace: str | None) -> str:
    """
    Check a namespace and return it unchanged.

    Raises:
        InvalidNameError: Empty, too long, or not a DNS-1123 label
    """
    if not namespace or not namespace.strip():
        raise InvalidNameError("namespace", namespace or "", "must not be empty")
    if len(namespace) > MAX_NAMESPACE_NAME:
        raise InvalidNameError("namespace", namespace, f"must be at most {MAX_NAMESPACE_NAME} characters")
    if not DNS_LABEL.match(namespace):
        raise InvalidNameError(
            "namespace", namespace, "must consist of lowercase alphanumerics or '-', and start and end alphanumeric"
        )
    return namespace
