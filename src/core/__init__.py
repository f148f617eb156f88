"""Core domain package for noteping.

Core contains deadline evaluation, reminder formatting, phone normalization,
and dispatch orchestration without any HTTP or storage-specific code, keeping
the business logic portable.
"""
