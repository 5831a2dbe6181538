"""
ShellGate
Browser terminal to SSH session bridge with RBAC and audit trail
"""

__version__ = "1.0.0"
