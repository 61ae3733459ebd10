"""
Spatial helpers — great-circle distance, radius filtering, centroids.
"""
