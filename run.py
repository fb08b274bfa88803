#!/usr/bin/env python3
"""
Managed Certificate Controller - Entry Point

Usage:
    python run.py [--namespace NAMESPACE] [--in-cluster] [--project PROJECT] [--verbose]
"""

from managed_certs.main import main

if __name__ == "__main__":
    main()
