from .immortaldb import ImmortalDB

__all__ = ["ImmortalDB"]
