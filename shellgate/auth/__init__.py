"""
ShellGate - Authentication and Permissions
"""
