"""OAuth 2.0 authorization server: token issuance, validation, rotation and revocation."""

__version__ = "0.1.0"
