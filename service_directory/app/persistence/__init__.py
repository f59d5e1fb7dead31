"""
Persistence package for the Directory service.
"""
