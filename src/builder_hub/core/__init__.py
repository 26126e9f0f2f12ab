"""Core components for AWS Builder Hub.

This module contains the foundational components: broker AWS client
management and YAML configuration handling.
"""
