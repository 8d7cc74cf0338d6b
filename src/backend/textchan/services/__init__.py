"""
Service-layer objects used by the API routes and the command line.
"""
