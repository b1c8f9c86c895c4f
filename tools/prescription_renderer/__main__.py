"""
Main entry point for prescription_renderer module.

Allows running as: python -m tools.prescription_renderer
"""

from .cli import cli

if __name__ == '__main__':
    cli()
