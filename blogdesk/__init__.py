"""Category hierarchy, access control and analytics backend for the blog platform"""
__version__ = "0.1.0"
