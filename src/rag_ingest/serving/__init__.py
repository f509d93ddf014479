"""
Serving — FastAPI application exposing segmentation and embedding over HTTP.
"""
