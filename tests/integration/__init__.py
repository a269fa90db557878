"""
sandbox-integrity — integration test package

File: tests/integration/__init__.py
Last updated: 2026-10-17

Purpose
- Test package marker file.
"""
