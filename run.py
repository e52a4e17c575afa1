#!/usr/bin/env python3
"""
S3 Compliance Verifier

Run this script to check an S3-compatible endpoint against S3 API semantics.

Usage:
    python run.py                          # Use config.json or S3VERIFY_* variables
    python run.py -c custom.json           # Use custom config
    python run.py --cases put_bucket,head_bucket
    python run.py --list-cases             # Show registered cases
    python run.py -q                       # Quiet mode (summary only)
    python run.py -j results.json          # Output JSON results
    python run.py --trace                  # Log redacted HTTP traffic
"""

import sys
from s3verify.cli import main

if __name__ == "__main__":
    sys.exit(main())
