#!/usr/bin/env python3
"""
Shim module delegating to molert.relay_service.
This file exists to preserve local runs from a checkout.
"""

from molert.relay_service import serve


if __name__ == '__main__':
    serve()
