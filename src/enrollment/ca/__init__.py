"""CA-facing module for host enrollment.

This module provides:
- HTTP client for the Puppet CA REST API
- Host key pair and CSR generation
- PEM parsing and CA response classification
"""

from enrollment.ca.client import CAClient
from enrollment.ca.key_generator import KeyGenerator

__all__ = ["CAClient", "KeyGenerator"]
