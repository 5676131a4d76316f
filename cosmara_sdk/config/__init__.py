"""
Configuration loading for the COSMARA Community SDK.
"""
