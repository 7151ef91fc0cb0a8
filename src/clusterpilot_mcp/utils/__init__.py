# ABOUTME: Utilities package initialization for ClusterPilot MCP
# ABOUTME: Contains the HTTP transport, logging, quantity parsing, safety guards, and name checks

"""
ClusterPilot MCP Utilities Package

Shared utilities:
    - client.py: Kubernetes REST transport with retry logic and error mapping
    - logging.py: Structured logging with correlation IDs and audit trail
    - quantity.py: Kubernetes resource quantity parsing and formatting
    - safety.py: Confirmation patterns and destructive operation guards
    - validation.py: Resource name and namespace checks before any request
"""
