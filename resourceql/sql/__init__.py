"""SQLAlchemy store layer: criteria interpreter, query wrapper and loader helpers."""
