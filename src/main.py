#!/usr/bin/env python3
"""
SNIProxy: route TLS connections by their SNI hostname without decrypting them.
"""

from app import main

if __name__ == "__main__":
    main()
