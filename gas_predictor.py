#!/usr/bin/env python3
"""
Convenience wrapper for running the predictor from a checkout.
Prefer: python -m gaspredictor
"""

from gaspredictor.cli import main

if __name__ == "__main__":
    main()
