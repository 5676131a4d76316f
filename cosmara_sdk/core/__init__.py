"""
Core modules for the COSMARA Community SDK.

This package contains the canonical model, error taxonomy, usage
tracking and license validation.
"""
