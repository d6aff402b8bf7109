"""
Authorization checks.
"""
