from immortaldb.handlers import immortaldb, probes

__all__ = ["immortaldb", "probes"]
