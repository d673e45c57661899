"""
Learn2Go Services
"""
