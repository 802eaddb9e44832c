"""RBS Storefront - authentication and session authorization backend"""
__version__ = "1.0.0"
