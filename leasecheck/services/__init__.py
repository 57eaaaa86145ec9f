"""
Contract analysis services.
"""
