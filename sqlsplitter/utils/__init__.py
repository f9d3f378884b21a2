from sqlsplitter.utils import logging

__all__ = ("logging",)
