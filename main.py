#!/usr/bin/env python3
"""
Run the storefront bot from a source checkout
Supports both local development (polling) and production deployment (webhook)
"""

import sys

from storefront.main import main

if __name__ == "__main__":
    sys.exit(main())
