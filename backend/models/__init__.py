"""Request bodies for the HTTP API"""
