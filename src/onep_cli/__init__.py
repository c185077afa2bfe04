"""1p - A pass-style command-line frontend for the 1Password `op` tool.
Lists vault items as a tree and wraps search, show, totp and generate.
"""

__version__ = "0.1.0"
