"""
Glow & Grace - онлайн-запись в салон красоты
"""
__version__ = "1.0.0"
