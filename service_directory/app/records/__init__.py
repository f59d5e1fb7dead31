"""
Record model, cache-consistent record service and rating aggregation.
"""
