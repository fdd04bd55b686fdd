"""API Simulator 自然语言助手"""

__version__ = "1.0.0"
