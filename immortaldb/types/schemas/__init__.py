from .immortaldb_spec import ImmortalDBSpecSchema, ImmortalDBStatusSchema

__all__ = ["ImmortalDBSpecSchema", "ImmortalDBStatusSchema"]
