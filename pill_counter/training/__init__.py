"""
Training data collection:
- store: blob + metadata persistence of labelled images
- bulk_queue: sequential bulk upload with per-item status
"""
