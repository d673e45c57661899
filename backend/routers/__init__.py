"""
Learn2Go API Routers
"""
