"""
ShellGate - API Endpoints
"""
