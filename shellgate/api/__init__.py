"""
ShellGate - API
"""
