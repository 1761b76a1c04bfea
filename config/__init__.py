"""
Configuration Package

Application-wide settings loaded from the environment (.env).
"""
