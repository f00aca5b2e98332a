"""
cert_issuer — RSA key and X.509 certificate issuance.

Generates RSA key pairs, serializes them to PEM (plain or password
encrypted), and issues self-signed, CA-signed and CSR-derived
certificates so a service can mint and rotate its own TLS identity.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
