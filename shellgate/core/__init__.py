"""
ShellGate - Core
"""
