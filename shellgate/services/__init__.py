"""
ShellGate - Services
"""
