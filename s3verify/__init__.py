"""
S3 Compliance Verifier.

Signs raw S3 requests with SigV4, sends them to an S3-compatible
endpoint and checks the responses against S3 API semantics.
"""

__version__ = "1.0.0"

from s3verify.cli import main

__all__ = ["main", "__version__"]
