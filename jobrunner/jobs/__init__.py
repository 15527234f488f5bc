"""
Built-in job namespace (approved by default).
"""
