"""
devchain - local development certificate chain provisioning.

Builds a root CA, an intermediate CA and a wildcard server certificate,
installs them into the local trust store and maps the development domains
in the hosts file.
"""

__version__ = "1.0.0"
