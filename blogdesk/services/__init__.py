"""Database-backed services"""
