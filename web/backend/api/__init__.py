"""API routers for the KDP cover backend"""
